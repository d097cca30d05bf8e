"""Rules of a guessing game: how guesses are scored, where rounds take place,
how a room moves through its rounds, and how idle rooms get cleaned up.

Nothing in here knows about sockets or HTTP.
"""
