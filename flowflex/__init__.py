"""FlowFlex messaging orchestration.

Durable delivery of order confirmations, catalogue promotions and
back-in-stock alerts through a WhatsApp Business Service Provider.
"""

__version__ = '0.1.0'
