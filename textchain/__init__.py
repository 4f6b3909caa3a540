"""TextChain SMS Command Gateway

This service turns inbound SMS text into wallet operations:
- Parses free-form commands (JOIN, SEND, SWAP, ...) into typed intents
- Resolves recipients given as addresses, phones, names or saved contacts
- Dispatches to the settlement backend, cashout service and repositories
- Replies with a single terse, deterministic SMS text
"""

__version__ = "1.0.0"
