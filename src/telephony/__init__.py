"""Telephony audio codec: G.711 mu-law and integer-ratio PCM16 resampling.

Everything here is pure and synchronous; it runs inline on the event loop for
each 20ms Twilio frame.
"""
