REPOSITORIES_DDL = """
CREATE TABLE IF NOT EXISTS repositories (
    organization LowCardinality(String) COMMENT 'Owner Organization',
    repo String COMMENT 'Repository Name',
    repo_type LowCardinality(String) COMMENT 'whitelisted, dependent, fork or whitelisted-fork',
    dependencies Array(String) COMMENT 'Parent SDKs / projects this repository depends on',
    default_branch String DEFAULT '' COMMENT 'Default Branch Name',
    stars UInt32 DEFAULT 0 COMMENT 'Star Count',
    forks UInt32 DEFAULT 0 COMMENT 'Fork Count',
    owner_type LowCardinality(String) DEFAULT '' COMMENT 'User or Organization',
    created_at Nullable(DateTime('UTC')) COMMENT 'Creation Time',
    updated_at Nullable(DateTime('UTC')) COMMENT 'Upstream Update Time',
    pushed_at Nullable(DateTime('UTC')) COMMENT 'Upstream Push Time',
    synced_at DateTime64(6, 'UTC') DEFAULT now64(6) COMMENT 'Row Version'
) ENGINE = ReplacingMergeTree(synced_at)
ORDER BY (organization, repo)
""".strip()

BRANCHES_DDL = """
CREATE TABLE IF NOT EXISTS branches (
    organization LowCardinality(String) COMMENT 'Owner Organization',
    repo String COMMENT 'Repository Name',
    branch String COMMENT 'Branch Name',
    latest_commit_date DateTime('UTC') COMMENT 'Watermark: newest commit time ingested',
    synced_at DateTime64(6, 'UTC') DEFAULT now64(6) COMMENT 'Row Version'
) ENGINE = ReplacingMergeTree(synced_at)
ORDER BY (organization, repo, branch)
""".strip()

COMMITS_DDL = """
CREATE TABLE IF NOT EXISTS commits (
    organization LowCardinality(String) COMMENT 'Owner Organization',
    repo String COMMENT 'Repository Name',
    hash String COMMENT 'Commit SHA',
    branch String COMMENT 'Branch the commit was first seen on',
    dev_id Nullable(UInt64) COMMENT 'GitHub Account ID of the author',
    dev_name String DEFAULT '' COMMENT 'Author Login or Git Name',
    commit_date DateTime('UTC') COMMENT 'Committer Time'
) ENGINE = ReplacingMergeTree
ORDER BY (organization, repo, hash)
""".strip()

DEVELOPERS_DDL = """
CREATE TABLE IF NOT EXISTS developers (
    dev_id UInt64 COMMENT 'GitHub Account ID',
    name String COMMENT 'Login',
    avatar String DEFAULT '' COMMENT 'Avatar URL',
    synced_at DateTime64(6, 'UTC') DEFAULT now64(6) COMMENT 'Row Version'
) ENGINE = ReplacingMergeTree(synced_at)
ORDER BY (dev_id)
""".strip()

CONTRIBUTIONS_DDL = """
CREATE TABLE IF NOT EXISTS contributions (
    dev_id UInt64 COMMENT 'GitHub Account ID',
    organization LowCardinality(String) COMMENT 'Owner Organization',
    repo String COMMENT 'Repository Name',
    contributions UInt32 COMMENT 'Running total reported by GitHub',
    synced_at DateTime64(6, 'UTC') DEFAULT now64(6) COMMENT 'Row Version'
) ENGINE = ReplacingMergeTree(synced_at)
ORDER BY (dev_id, organization, repo)
""".strip()

# Derived aggregates: refreshable materialized views, recomputed wholesale.
# The schedule is a fallback; the sync loop refreshes them after each pass.
WEEKLY_COMMITS_DDL = """
CREATE MATERIALIZED VIEW IF NOT EXISTS weekly_commits
REFRESH EVERY 1 DAY
ENGINE = MergeTree ORDER BY week
AS SELECT
    toMonday(commit_date) AS week,
    count() AS commits
FROM commits FINAL
GROUP BY week
""".strip()

WEEKLY_NEW_DEVELOPERS_DDL = """
CREATE MATERIALIZED VIEW IF NOT EXISTS weekly_new_developers
REFRESH EVERY 1 DAY
ENGINE = MergeTree ORDER BY week
AS SELECT
    week,
    count() AS new_developers
FROM (
    SELECT dev_id, toMonday(min(commit_date)) AS week
    FROM commits FINAL
    WHERE dev_id IS NOT NULL
    GROUP BY dev_id
)
GROUP BY week
""".strip()

CUMULATIVE_TOTALS_DDL = """
CREATE MATERIALIZED VIEW IF NOT EXISTS cumulative_totals
REFRESH EVERY 1 DAY
ENGINE = MergeTree ORDER BY week
AS SELECT
    c.week AS week,
    sum(c.commits) OVER (ORDER BY c.week ROWS UNBOUNDED PRECEDING) AS cumulative_commits,
    sum(d.new_developers) OVER (ORDER BY c.week ROWS UNBOUNDED PRECEDING) AS cumulative_developers
FROM (
    SELECT toMonday(commit_date) AS week, count() AS commits
    FROM commits FINAL
    GROUP BY week
) AS c
LEFT JOIN (
    SELECT week, count() AS new_developers
    FROM (
        SELECT dev_id, toMonday(min(commit_date)) AS week
        FROM commits FINAL
        WHERE dev_id IS NOT NULL
        GROUP BY dev_id
    )
    GROUP BY week
) AS d ON c.week = d.week
""".strip()

TABLE_DDLS = (
    REPOSITORIES_DDL,
    BRANCHES_DDL,
    COMMITS_DDL,
    DEVELOPERS_DDL,
    CONTRIBUTIONS_DDL,
)

VIEW_DDLS = {
    'weekly_commits': WEEKLY_COMMITS_DDL,
    'weekly_new_developers': WEEKLY_NEW_DEVELOPERS_DDL,
    'cumulative_totals': CUMULATIVE_TOTALS_DDL,
}
