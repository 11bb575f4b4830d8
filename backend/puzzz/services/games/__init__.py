"""Game domain services: phase machines, scoring and timers.

Everything here is transport-free. HTTP routes, socket handlers and client
sessions import these modules; none of them import Flask.
"""
