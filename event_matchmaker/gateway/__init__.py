"""
Entity gateway and store interfaces.

Modules
-------
stores         : typing.Protocol interfaces for every external store.
entity_gateway : EntityGateway — validated, typed profile access.
history_loader : HistorySignalsLoader — per-pair signal pre-fetch for scoring.
"""
