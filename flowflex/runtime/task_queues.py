"""Task queue name constants.

These names are the deployment contract between the Gateway and the Workers:
every workflow type is routed to exactly one queue and a Worker started for
that queue must use the identical string.
"""

ORDER_CONFIRMATION_QUEUE = 'order-confirmation-queue'
ORDER_CANCELLATION_QUEUE = 'order-cancellation-queue'
CATALOGUE_MESSAGING_QUEUE = 'catalogue-messaging-queue'
BACK_IN_STOCK_QUEUE = 'back-in-stock-queue'

ALL_QUEUES = (
    ORDER_CONFIRMATION_QUEUE,
    ORDER_CANCELLATION_QUEUE,
    CATALOGUE_MESSAGING_QUEUE,
    BACK_IN_STOCK_QUEUE,
)
