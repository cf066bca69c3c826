# zonectl
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
zonectl: terminal client for a home-audio control server.

The interesting part lives in the session orchestrator: a single handler per
server connection that reconciles pushed zone, queue and browse notifications
with the user's intents.  Rendering is left to whoever consumes the
``UiEvent`` queue.
"""

__version__ = "0.3.2"
