"""
UTILITIES PACKAGE
=================

Helpers used by the services (no HTTP, no business logic):

  sse - FrameBuffer (stateful decode + split), upstream line parsing, relay record parsing.
"""
