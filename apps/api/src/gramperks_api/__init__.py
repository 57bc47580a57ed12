"""GramPerks API: collectibles, vendor perks, and redemption approval."""
