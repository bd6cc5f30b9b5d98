"""
Messaging bus package.

Opens the NATS connection used for discovery. Authentication options
mirror the usual NATS CLI flags: a credentials file, or a user JWT with
its nkey seed.
"""
