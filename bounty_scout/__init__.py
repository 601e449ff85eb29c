"""Bounty discovery pipeline.

Polls bounty sources concurrently, funnels candidates through URL checks,
sanitization and dedup, scores them and persists the result.

Key modules:
    base            -- BaseScanner abstract class, shared pagination and fetch
    scanners        -- GitHubScanner, SuperteamScanner, BountycasterScanner
    factory         -- ScannerFactory for building enabled scanners
    orchestrator    -- Orchestrator for scan cycles and the funnel consumer
    funnel          -- Funnel for canonicalization, dedup and persistence
    scoring         -- score() and payment tiers
    inference       -- payment and tag inference
    validation      -- fail-closed page validation, text sanitizing
    urls            -- URL canonicalization, safety and reachability
    metrics         -- MetricsCollector for funnel outcomes
    models          -- CandidateRecord, PersistedRecord, RateLimitState
    rate_limiter    -- RateLimiter for quota-aware request spacing
    backoff         -- BackoffStrategy for exponential retry delays
    retry           -- RetryExecutor for transient failures
    storage         -- StorageBase, JsonlStorage and SqliteStorage
    notify          -- Notifier and Broadcaster
    config          -- Settings, Heuristics and load_settings()
    logging_setup   -- configure_logging() and secret masking
"""
