"""
alerts — SOS alert lifecycle.

Sub-modules:
    channels/    — I/O backends (collector, SMS, voice, connectivity, location)
    controller   — state machine: trigger, countdown, dispatch, cancel
    dispatch     — network-vs-SMS delivery pipeline with fallback
    reconciler   — start-up retry of alerts left pending
    roster       — ordered, unique-by-phone emergency contacts
    timer        — cancellable one-shot countdown
    store        — durable alert log + contact/settings documents
    tables       — ORM tables
    models       — data structures shared across the system
"""
