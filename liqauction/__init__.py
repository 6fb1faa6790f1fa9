"""
Liquidation Auction Engine (liqauction)

A descending-price settlement engine for seized collateral integrating:
- Linear price decay with a floor
- Commit-reveal sealed bidding against sniping
- MEV and flashloan protection heuristics
- Settlement and cleanup accounting
"""
