from logging import getLogger

from cassandra.query import SimpleStatement

from .comparison import Snapshot
from .config import ScyllaSettings
from .session_pool import consistency_level


logger = getLogger(__name__)


CREATE_KEYSPACE_QUERY = '''
CREATE KEYSPACE {keyspace} WITH replication =
{{'class': 'SimpleStrategy', 'replication_factor': {replication_factor}}}
'''

CREATE_TABLE_QUERY = '''
CREATE TABLE {keyspace}.{table} (p int, c int, r int, PRIMARY KEY (p, c))
'''

CREATE_VIEW_QUERY = '''
CREATE MATERIALIZED VIEW {keyspace}.{view} AS
SELECT p, c, r FROM {keyspace}.{table}
WHERE p IS NOT NULL AND c IS NOT NULL
PRIMARY KEY ((p, c))
'''

INSERT_QUERY = 'INSERT INTO {keyspace}.{table} (p, c, r) VALUES (?, ?, ?)'

SELECT_ALL_QUERY = 'SELECT p, c, r FROM {keyspace}.{table}'


class ScyllaApi:
    FETCH_SIZE = 5000

    def __init__(self, session, settings: ScyllaSettings, name: str = '', session_factory=None):
        self.session = session
        self.session_factory = session_factory
        self.settings = settings
        self.name = name
        self._insert_statement = None

    def get_session(self):
        # a node that was down at startup gets its session on first use,
        # until then every call raises the connection error
        if self.session is None:
            if self.session_factory is None:
                raise RuntimeError(f'[{self.name}] no session')
            self.session = self.session_factory()
        return self.session

    def execute_command(self, query, consistency: str | None = None):
        if consistency is not None:
            query = SimpleStatement(query, consistency_level=consistency_level(consistency))
        logger.debug(f'[{self.name}] executing {query}')
        return self.get_session().execute(query)

    def setup_schema(self):
        params = {
            'keyspace': self.settings.keyspace,
            'table': self.settings.table,
            'view': self.settings.view,
            'replication_factor': self.settings.replication_factor,
        }
        logger.info(f'recreating keyspace {self.settings.keyspace}')
        self.execute_command(f'DROP KEYSPACE IF EXISTS {self.settings.keyspace}')
        self.execute_command(CREATE_KEYSPACE_QUERY.format(**params))
        self.execute_command(CREATE_TABLE_QUERY.format(**params))
        self.execute_command(CREATE_VIEW_QUERY.format(**params))
        logger.info(f'created {self.settings.keyspace}.{self.settings.table} and view {self.settings.view}')

    def get_insert_statement(self, consistency: str | None = None):
        if self._insert_statement is None:
            statement = self.get_session().prepare(INSERT_QUERY.format(
                keyspace=self.settings.keyspace,
                table=self.settings.table,
            ))
            # retrying an insert of the same immutable row is safe
            statement.is_idempotent = True
            if consistency is not None:
                statement.consistency_level = consistency_level(consistency)
            self._insert_statement = statement
        return self._insert_statement

    def insert_row(self, row, consistency: str | None = None):
        statement = self.get_insert_statement(consistency)
        self.get_session().execute(statement, (row.p, row.c, row.r))

    def read_all_rows(self, table: str, consistency: str | None = None) -> Snapshot:
        """Full-table read, paged by the driver, returned as an unordered set."""
        query = SELECT_ALL_QUERY.format(keyspace=self.settings.keyspace, table=table)
        statement_options = {'fetch_size': self.FETCH_SIZE, 'is_idempotent': True}
        if consistency is not None:
            statement_options['consistency_level'] = consistency_level(consistency)
        statement = SimpleStatement(query, **statement_options)
        rows = self.get_session().execute(statement)
        snapshot = Snapshot.from_rows((row[0], row[1], row[2]) for row in rows)
        logger.debug(f'[{self.name}] read {len(snapshot)} rows from {table}')
        return snapshot

    def read_base_rows(self, consistency: str | None = 'quorum') -> Snapshot:
        return self.read_all_rows(self.settings.table, consistency)

    def read_view_rows(self, consistency: str | None = 'one') -> Snapshot:
        return self.read_all_rows(self.settings.view, consistency)
