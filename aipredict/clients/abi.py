"""
Prediction market contract interface and role identifiers.
Only the functions the backend calls are listed.
"""

from web3 import Web3


def _role_id(name: str) -> str:
    """AccessControl role id: keccak256 of the role name."""
    return Web3.to_hex(Web3.keccak(text=name))


DEFAULT_ADMIN_ROLE = "0x" + "00" * 32
ADMIN_ROLE = _role_id("ADMIN_ROLE")
CREATOR_ROLE = _role_id("CREATOR_ROLE")
ORACLE_ROLE = _role_id("ORACLE_ROLE")
PREDICTOR_ROLE = _role_id("PREDICTOR_ROLE")
MODERATOR_ROLE = _role_id("MODERATOR_ROLE")

ROLES = {
    "admin": ADMIN_ROLE,
    "creator": CREATOR_ROLE,
    "oracle": ORACLE_ROLE,
    "predictor": PREDICTOR_ROLE,
    "moderator": MODERATOR_ROLE,
}

PREDICTION_MARKET_ABI = [
    {
        "inputs": [
            {"name": "description", "type": "string"},
            {"name": "duration", "type": "uint256"},
            {"name": "minVotes", "type": "uint256"},
            {"name": "maxVotes", "type": "uint256"},
            {"name": "predictionType", "type": "uint8"},
            {"name": "optionsCount", "type": "uint8"},
            {"name": "tags", "type": "string[]"}
        ],
        "name": "createPrediction",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [
            {"name": "predictionId", "type": "uint256"},
            {"name": "outcome", "type": "uint8"}
        ],
        "name": "finalizePrediction",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [{"name": "predictionId", "type": "uint256"}],
        "name": "getPredictionDetails",
        "outputs": [
            {"name": "description", "type": "string"},
            {"name": "endTime", "type": "uint256"},
            {"name": "status", "type": "uint8"},
            {"name": "totalVotes", "type": "uint256[]"},
            {"name": "outcome", "type": "uint8"},
            {"name": "minVotes", "type": "uint256"},
            {"name": "maxVotes", "type": "uint256"},
            {"name": "predictionType", "type": "uint8"},
            {"name": "creator", "type": "address"},
            {"name": "creationTime", "type": "uint256"},
            {"name": "tags", "type": "string[]"},
            {"name": "optionsCount", "type": "uint8"},
            {"name": "totalBetAmount", "type": "uint256"}
        ],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "predictionCounter",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"name": "user", "type": "address"}],
        "name": "getUserStats",
        "outputs": [
            {"name": "totalPredictions", "type": "uint256"},
            {"name": "correctPredictions", "type": "uint256"},
            {"name": "totalRewards", "type": "uint256"}
        ],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [
            {"name": "role", "type": "bytes32"},
            {"name": "account", "type": "address"}
        ],
        "name": "hasRole",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function"
    }
]
