"""Message catalogs for stellar_core (one ``<locale>/messages.yaml`` each)."""
