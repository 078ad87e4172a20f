"""Registry — the remote store of previously synchronized registrations.

The registry provides:
- A narrow record interface (find, create, update, delete, set_state)
- The message and filter catalogs used during extraction
- An adapter that maps records to and from the registration model
"""
