"""
Sambung Kata: an Indonesian word-chain game against a friend or a language model.

Components:
- state: themes, modes, players, MoveRecord and the immutable SessionState
- chain_validator: local chain checks (empty, single word, first letter, repetition)
- game: events, effects and the apply() reducer
- clock: turn countdown rule and its asyncio driver
- session: GameSession runs the reducer, oracle calls and the clock
- oracle/prompting/llm_client: MoveOracle contract and the LLM-backed implementation
- cli/web: terminal and HTTP surfaces
"""
# Package exports are intentionally minimal; import modules directly as needed.
