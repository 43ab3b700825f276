"""
Stockline business modules.

catalog     -- products, variants, suppliers, users, manual adjustments
sales       -- sales order lifecycle
purchasing  -- purchase order lifecycle
reporting   -- dashboard aggregates
"""
