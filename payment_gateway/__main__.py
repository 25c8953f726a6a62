"""Run the payment gateway API: python -m payment_gateway."""
from payment_gateway.api.main import run

run()
