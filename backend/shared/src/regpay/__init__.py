"""Registration payment gate for the HaulSaver marketplace.

Domain package: configuration, models, and the services that issue Stripe
Payment Intents, consume Stripe webhooks, write paid flags to Sharetribe
profiles, and decide route access.
"""

__version__ = "0.1.0"
