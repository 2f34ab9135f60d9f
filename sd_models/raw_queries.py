"""
Raw queries, one variant per supported SQL dialect.

The datastore picks the variant matching its own dialect. Replacements are
written as ``:name`` placeholders; list values expand to comma separated
placeholders.
"""

from enum import Enum


class RawQuery(Enum):
    BUILD_STATUSES = "build_statuses"
    LATEST_BUILDS = "latest_builds"


def build_statuses_query(prefix: str = "") -> str:
    return f"""SELECT "id", "job_id", "status", "start_time", "end_time", "meta"
        FROM (SELECT "id", "job_id", "status", "start_time", "end_time", "meta",
        RANK() OVER (PARTITION BY "job_id" ORDER BY "id" DESC) AS rank
        FROM "{prefix}builds" WHERE "job_id" IN (:job_ids)) AS R
        WHERE rank > :offset AND rank <= :max_rank
        ORDER BY "job_id", "id" ASC"""


def build_statuses_query_mysql(prefix: str = "") -> str:
    return f"""SELECT id, job_id, status, start_time, end_time, meta FROM (
        SELECT a.id, a.job_id, a.status, a.start_time, a.end_time, a.meta, count(b.id) AS `rank`
        FROM `{prefix}builds` a LEFT JOIN (SELECT id, job_id FROM `{prefix}builds` WHERE job_id IN (:job_ids)) b
            ON a.id <= b.id AND a.job_id = b.job_id
        WHERE a.job_id IN (:job_ids)
        GROUP BY a.job_id, a.id) AS R
        WHERE `rank` > :offset AND `rank` <= :max_rank
        ORDER BY job_id, id ASC"""


def latest_builds_query(prefix: str = "") -> str:
    return f"""SELECT * FROM (
        SELECT *, RANK() OVER (PARTITION BY "job_id" ORDER BY "id" DESC) AS rank
        FROM "{prefix}builds" WHERE "event_id" IN
            (SELECT "id" FROM "{prefix}events" WHERE "group_event_id" = :group_event_id)) AS latest
        WHERE rank = 1
        ORDER BY "job_id", "id" DESC"""


def latest_builds_query_mysql(prefix: str = "") -> str:
    return f"""SELECT * FROM (
        SELECT a.*, count(b.id) AS `rank`
        FROM `{prefix}builds` a LEFT JOIN (SELECT id, job_id FROM `{prefix}builds` WHERE event_id IN
                (SELECT id FROM `{prefix}events` WHERE group_event_id = :group_event_id)) b
            ON a.id <= b.id AND a.job_id = b.job_id
        WHERE a.event_id IN (SELECT id FROM `{prefix}events` WHERE group_event_id = :group_event_id)
        GROUP BY a.job_id, a.id) AS R
        WHERE `rank` = 1
        ORDER BY job_id, id DESC"""


_QUERIES = {
    RawQuery.BUILD_STATUSES: (build_statuses_query, build_statuses_query_mysql),
    RawQuery.LATEST_BUILDS: (latest_builds_query, latest_builds_query_mysql),
}


def get_queries(prefix: str, label: RawQuery) -> list[dict[str, str]]:
    """
    Return every dialect variant of a raw query.

    Args:
        prefix: Table name prefix of the datastore
        label: Which query to build

    Returns:
        [{"db_type": dialect, "query": sql}, ...]

    Raises:
        ValueError: If the label is not a known query
    """
    try:
        standard, mysql = _QUERIES[label]
    except KeyError:
        raise ValueError("Unsupported Raw Query") from None

    return [
        {"db_type": "postgres", "query": standard(prefix)},
        {"db_type": "sqlite", "query": standard(prefix)},
        {"db_type": "mysql", "query": mysql(prefix)},
    ]
