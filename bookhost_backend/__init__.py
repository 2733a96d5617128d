"""Backend utilities for hosting uploaded mdBook projects.

This package intentionally keeps FastAPI route handlers thin:
- book directory lifecycle (source tree + build tree per book)
- ZIP extraction with Zip Slip protection
- running the external generator
- safe content path resolution for serving rendered output

Security note:
Every path that touches disk is derived from a validated slug and checked
against its root before use. Never log or expose filesystem paths in
responses.
"""
