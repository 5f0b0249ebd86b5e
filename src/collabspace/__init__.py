"""CollabSpace — collaborative productivity backend.

Todos, notes, projects and chat for small teams, with cookie sessions,
project membership checks, and live updates pushed over Server-Sent Events.
"""

__version__ = "0.1.0"
