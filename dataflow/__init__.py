"""
Dataflow Layer

Event I/O for the live chart. Contains:
- historical: TwelveData time_series fetch and normalization
- ingestion: Live price WebSocket feed
- candle_aggregation: Tick to candle aggregation
- series: In-memory series sink and NATS publisher
- adapters: NATS client adapters
- query: FastAPI read surface
"""
