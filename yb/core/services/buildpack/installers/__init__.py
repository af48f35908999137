"""
Installer functions, one per buildpack.

Each takes ``(ctx, sys, spec)`` and returns the Environment the
buildpack contributes. The registry maps buildpack names to them.
"""
