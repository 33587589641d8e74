"""Offline stand-in for the ruleset, market-data and FX providers.

Run with ``uvicorn mocks.mock_market_api:app --port 8080`` and pass
``localhost:8080`` as the ruleset host; point ``FX_BASE_URL`` at the same
server.
"""
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Query

app = FastAPI()

# --- Sample Data ---
SAMPLE_RULESETS: Dict[str, Dict[str, Any]] = {
    "PledgerBank/PledgeeBank": {
        "Security": {
            "Common Stocks": [35, 1, 95],
            "Corporate Bonds": [30, 2, 95],
            "Sovereign Bonds": [25, 3, 93],
            "US Treasury Bills": [20, 4, 95],
            "Gilt": [25, 7, 94],
        },
        "BaseCurrency": "USD",
        "EligibleCurrency": ["USD", "EUR", "GBP"],
    },
}

SAMPLE_PRICES: Dict[str, str] = {
    "AAPL": "150.25",
    "MSFT": "310.10",
    "US912828U816": "99.80",
    "GB00BDRHNP05": "102.40",
    "XS1234567890": "87.15",
}

SAMPLE_RATES: Dict[str, Dict[str, float]] = {
    "USD": {"EUR": 0.93006, "GBP": 0.80723, "JPY": 112.69},
    "EUR": {"USD": 1.0752, "GBP": 0.86793, "JPY": 121.16},
    "GBP": {"USD": 1.2388, "EUR": 1.1522, "JPY": 139.60},
}


@app.get("/securityRuleset/{pledger}/{pledgee}")
async def security_ruleset(pledger: str, pledgee: str) -> Dict[str, Any]:
    ruleset = SAMPLE_RULESETS.get(f"{pledger}/{pledgee}")
    if ruleset is None:
        raise HTTPException(status_code=404, detail="Ruleset not found")
    return ruleset


@app.get("/MarketData/{security_id}")
async def market_data(security_id: str) -> List[str]:
    price = SAMPLE_PRICES.get(security_id)
    if price is None:
        raise HTTPException(status_code=404, detail="Security not found")
    return [price]


@app.get("/latest")
async def latest(base: str = Query("USD")) -> Dict[str, Any]:
    rates = SAMPLE_RATES.get(base)
    if rates is None:
        raise HTTPException(status_code=422, detail=f"Unsupported base {base}")
    return {"base": base, "date": "2017-03-20", "rates": rates}
