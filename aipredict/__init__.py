"""
AI Predict Oracle Backend

Backend for an AI-assisted prediction market on Base Sepolia.

Entry point: python -m aipredict.main
   - Serves the dashboard API (FastAPI + uvicorn)
   - Optionally sweeps ended predictions and finalizes them with AI

Key Modules:
- aipredict.clients: Perplexity, OpenAI, Pyth and contract/wallet clients
- aipredict.markets: Prediction models, AI generation and AI resolution
- aipredict.faucet: Test ETH faucet
- aipredict.database: SQLite history of generated, resolved and funded items
- aipredict.api: FastAPI server for the dashboard
"""
