"""Initial hospitality corpus written by the bootstrap loader.

Keys are category names (also the sub-directory under the knowledge root);
values map a markdown filename to its contents.
"""

from __future__ import annotations

SEED_CORPUS: dict[str, dict[str, str]] = {
    "restaurant_management": {
        "overview.md": """# Restaurant Management Overview

## Core Operational Areas

### Front of House
Front of house covers every guest-facing activity: greeting and seating,
table service, payment and the overall dining experience. Host stand
software, table management and guest profiles are the main digital tools.

### Back of House
Back of house covers food preparation, kitchen workflow, dishwashing and
storage. Kitchen display systems route orders from the POS to the right
station and track ticket times.

### Inventory and Procurement
Stock levels, ordering, receiving and supplier relationships determine food
cost. Par levels per item and weekly counts keep waste and stock-outs low.

### Staff Management
Scheduling, time tracking, payroll and training. Labour is usually the
largest controllable cost after food, so schedules follow forecast covers.

## Key Performance Indicators

- Food cost percentage: cost of goods sold divided by food sales, commonly 28-35%.
- Labour cost percentage: total labour divided by total sales, commonly 25-35%.
- Prime cost: food cost plus labour cost, ideally below 65% of sales.
- Table turnover: parties seated per table per service.
- Average check: total sales divided by number of guests.
""",
        "implementation_best_practices.md": """# Implementation Best Practices for Restaurant Software

## Data Model
Model menus as items, modifiers and modifier groups rather than flat
products. Keep prices on the menu item per location so multi-site groups
can vary pricing without duplicating items.

## Offline Operation
Service cannot stop when the network does. Queue orders and payments
locally and reconcile when connectivity returns, using idempotency keys so
a retried request is never charged twice.

## Time and Service Periods
Business days rarely end at midnight. Store a configurable day-close time
and attribute late-night sales to the correct trading day.

## Audit Trail
Voids, comps and discounts must record who performed them and why. These
records feed loss-prevention reports and are often required by auditors.
""",
    },
    "pos_integration": {
        "integration_patterns.md": """# POS Integration Patterns

## Webhooks versus Polling
Prefer webhooks for order and payment events; fall back to polling with a
cursor or updated-since timestamp when the POS only offers REST reads.
Always verify webhook signatures before trusting the payload.

## Menu Synchronisation
Treat the POS as the source of truth for menu items and prices. Sync on a
schedule and on change notifications, mapping external ids to internal ids
in a dedicated table so renames do not break links.

## Order Injection
When sending online orders into the POS, include the external order id,
fulfilment type (dine-in, pickup, delivery) and requested time. Handle
rejected items explicitly instead of silently dropping them.

## Rate Limits and Retries
Respect documented rate limits, back off exponentially on 429 responses
and make every write idempotent so a retry cannot duplicate an order.
""",
    },
    "reservation_systems": {
        "api_integration.md": """# Reservation System API Integration

## Availability
Availability depends on table inventory, turn times per party size and
service-period rules. Query availability for a date and party size rather
than computing it client-side.

## Booking Lifecycle
A reservation moves through requested, confirmed, seated, completed,
cancelled and no-show. Persist every transition with a timestamp so
no-show rates and lead times can be analysed later.

## Guest Data
Match guests on email and phone to build visit history, allergies and
preferences. Respect consent flags before using data for marketing.

## Deposits and Cancellation Policies
For large parties or peak nights, capture a card or deposit at booking time
and apply the venue's cancellation window automatically.
""",
    },
    "inventory_procurement": {
        "inventory_control.md": """# Inventory Control and Procurement

## Counting
Count high-value items (proteins, spirits) weekly and everything else at
least monthly. Count in the order items sit on the shelf to save time.

## Par Levels
A par level is the quantity needed to get from one delivery to the next
plus a safety buffer. Order quantity equals par minus on-hand stock.

## Receiving
Check every delivery against the purchase order for quantity, quality and
price before signing. Record credit notes for shorted or rejected items.

## Variance
Theoretical usage comes from recipes multiplied by items sold. The gap
between theoretical and actual usage points to waste, over-portioning or
theft.
""",
    },
    "payment_processing": {
        "payment_flows.md": """# Payment Processing in Hospitality

## Card Present
Use certified terminals with point-to-point encryption so card data never
touches the POS. Pay-at-table devices shorten the time to close a check.

## Tips and Pre-authorisation
Bar tabs and table service often pre-authorise an amount and capture the
final total plus tip later. Capture within the card network's window to
avoid expired authorisations.

## Split Bills
Support splitting by item, by seat and by equal shares. Each split is its
own payment and refund target.

## Reconciliation
Reconcile settled batches against POS sales daily; investigate differences
caused by voids after settlement, chargebacks and offline payments.
""",
    },
    "supplier_relations": {
        "supplier_management.md": """# Supplier Relations

## Selection
Evaluate suppliers on price, quality consistency, delivery reliability,
minimum order values and payment terms, not on price alone.

## Ordering
Consolidate orders to reduce delivery fees and receiving labour. Keep order
guides per supplier with item codes, pack sizes and current prices.

## Performance Tracking
Track fill rate, on-time delivery and price changes per supplier. Review
the numbers quarterly and use them when renegotiating terms.

## Relationship
Pay on time, communicate menu changes early and give feedback on quality.
Good relationships earn allocation of scarce products and better pricing.
""",
    },
}
