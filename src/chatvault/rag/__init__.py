"""Query pipeline: intent classification, retrieval, answer synthesis."""
