"""HTTP layer: authentication gate, answer providers, streaming orchestration, object storage and routers."""
