"""
Vision-based table extraction for scanned and digital documents.

Pipeline per document:
  1. Rasterizer        - document bytes → PNG page images
  2. AnalysisEngine    - optional; samples pages and asks clarifying questions
  3. Orchestrator      - per page: vision model → TableRepairer → fallback
  4. Aggregator        - page order, sheet names, document confidence
"""
