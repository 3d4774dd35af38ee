"""State layer.

Typed cross-component notifications (:mod:`mapch.state.bus`) and the
small persisted photo-reference cache (:mod:`mapch.state.store`).
"""
