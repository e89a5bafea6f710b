"""
yardplan - trailer cargo-placement engine.

Assigns freight loads (collections of pallets) onto trailers and produces
reviewable, auditable placement plans:
- Placement planning under capacity and cargo-compatibility constraints
- Axle-balance and legal-weight scoring
- Multi-strategy plan suggestions
- Plan lifecycle (preview, apply, reject) backed by an append-only event ledger
"""

__version__ = "1.0.0"
