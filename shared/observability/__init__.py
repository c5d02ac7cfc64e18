from .setup import setup_observability
from .metrics import (
    farm_token_validation_total,
    farm_forced_logout_total,
    farm_cart_mutation_total,
    farm_cart_items,
    farm_health_check_total
)
