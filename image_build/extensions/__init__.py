"""Build-time capability extensions, loaded by name with ``ctx.load_extension``."""
