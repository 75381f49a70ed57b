"""remotedesk -- stateless remote screen and input relay.

Agents register, stream their most recent screen frame and poll for
queued input commands; controllers list agents, pull frames and enqueue
commands. All state lives in a shared key-value store, so any number of
HTTP workers can serve the same deployment.
"""

__version__ = "0.1.0"
