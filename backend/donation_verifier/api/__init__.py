"""API package.

This exposes router modules to simplify test imports like:
	from donation_verifier.api.routes.donations import router
"""

__all__ = [
	"routes",
]
