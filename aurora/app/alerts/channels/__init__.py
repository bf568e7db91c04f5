"""
channels — I/O backends consumed by the dispatch pipeline and controller.

    collector     — HTTP POST of the alert to the remote collector
    sms_gateway   — best-effort SMS broadcast (MessagingGateway)
    voice_call    — backup voice call to the emergency number
    connectivity  — network reachability probe (ConnectivityOracle)
    location      — last-known-fix LocationProvider

HTTP backends share one lazily created httpx.AsyncClient each and accept an
optional ``transport`` so tests can substitute httpx.MockTransport.
"""
