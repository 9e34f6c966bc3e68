"""Top-level package for the donation verification backend.

Donors of the relief app upload a photo of their bank transfer receipt.
This package reads the receipt with a vision model, checks it against
the receiving organization's bank details and the expected amount, and
accepts or declines the donation.  It contains the Pydantic and
SQLAlchemy models, the extraction, matching and validation services,
the verification pipeline, the Dramatiq worker task and the FastAPI
application.

To run the API locally you can execute:

```bash
uvicorn donation_verifier.api.main:app --reload
```

The default configuration uses a local SQLite database stored in
``donations.db``.  Override configuration values using environment
variables or a ``.env`` file at the project root.
"""

__all__: list[str] = []
