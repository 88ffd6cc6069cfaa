# /saferelay/abis/safe.py
SAFE_ABI = [
    {"inputs": [], "name": "nonce", "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [{"internalType": "address", "name": "targetContract", "type": "address"}, {"internalType": "bytes", "name": "calldataPayload", "type": "bytes"}], "name": "simulateAndRevert", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
]

SIMULATE_TX_ACCESSOR_ABI = [
    {"inputs": [{"internalType": "address", "name": "to", "type": "address"}, {"internalType": "uint256", "name": "value", "type": "uint256"}, {"internalType": "bytes", "name": "data", "type": "bytes"}, {"internalType": "enum Enum.Operation", "name": "operation", "type": "uint8"}], "name": "simulate", "outputs": [{"internalType": "uint256", "name": "estimate", "type": "uint256"}, {"internalType": "bool", "name": "success", "type": "bool"}, {"internalType": "bytes", "name": "returnData", "type": "bytes"}], "stateMutability": "nonpayable", "type": "function"},
]

MULTISEND_ABI = [
    {"inputs": [{"internalType": "bytes", "name": "transactions", "type": "bytes"}], "name": "multiSend", "outputs": [], "stateMutability": "payable", "type": "function"},
]
