"""FoodHub promotion, loyalty, wallet and rate-limit API."""
