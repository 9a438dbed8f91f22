# conftest.py
"""
테스트 공용 픽스처.

FakeFirestore 는 서비스들이 쓰는 만큼의 Firestore 클라이언트 동작을 메모리에서 흉내 냅니다.
- 컬렉션/문서/하위 컬렉션, get/set(merge)/update(점 경로)/delete
- where(FieldFilter), order_by, limit, count, stream
- batch, transaction (쓰기를 바로 반영)
- on_snapshot 리스너 (쓰기마다 다시 호출)
- SERVER_TIMESTAMP, Increment 변환
"""
import copy
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import firebase_admin.firestore
from firebase_admin import firestore
from flask_jwt_extended import create_access_token
from google.api_core.exceptions import NotFound


def _resolve(value, current=None):
    if value is firestore.SERVER_TIMESTAMP:
        return datetime.now(timezone.utc)
    if isinstance(value, firestore.Increment):
        return (current or 0) + value.value
    if isinstance(value, dict):
        return {k: _resolve(v, (current or {}).get(k) if isinstance(current, dict) else None)
                for k, v in value.items()}
    return value


def _deep_merge(target: dict, source: dict) -> dict:
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = _resolve(value, target.get(key))
    return target


def _get_field(data: dict, field_path: str):
    value = data
    for part in field_path.split('.'):
        if not isinstance(value, dict) or part not in value:
            return None
        value = value[part]
    return value


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, db, path):
        self._db = db
        self.path_tuple = path

    @property
    def id(self):
        return self.path_tuple[-1]

    @property
    def path(self):
        return '/'.join(self.path_tuple)

    def __eq__(self, other):
        return isinstance(other, FakeDocumentRef) and other.path_tuple == self.path_tuple

    def __hash__(self):
        return hash(self.path_tuple)

    def collection(self, name):
        return FakeCollectionRef(self._db, self.path_tuple + (name,))

    def get(self, transaction=None):
        return FakeSnapshot(self, copy.deepcopy(self._db.store.get(self.path_tuple)))

    def set(self, data, merge=False):
        self._db._write(self.path_tuple, 'set', data, merge=merge)

    def update(self, data):
        self._db._write(self.path_tuple, 'update', data)

    def delete(self):
        self._db._write(self.path_tuple, 'delete')


class FakeAggregationResult:
    def __init__(self, value):
        self.value = value


class FakeQuery:
    def __init__(self, db, collection_path, filters=None, orders=None, limit_count=None):
        self._db = db
        self._collection_path = collection_path
        self._filters = filters or []
        self._orders = orders or []
        self._limit = limit_count

    def _copy(self, **changes):
        params = dict(filters=list(self._filters), orders=list(self._orders), limit_count=self._limit)
        params.update(changes)
        return FakeQuery(self._db, self._collection_path, **params)

    def where(self, field_path=None, op_string=None, value=None, filter=None):
        if filter is not None:
            field_path, op_string, value = filter.field_path, filter.op_string, filter.value
        return self._copy(filters=self._filters + [(field_path, op_string, value)])

    def order_by(self, field_path, direction=None):
        descending = direction == firestore.Query.DESCENDING
        return self._copy(orders=self._orders + [(field_path, descending)])

    def limit(self, count):
        return self._copy(limit_count=count)

    @staticmethod
    def _matches(doc_id, data, field_path, op, value):
        if field_path == '__name__':
            def key(v):
                return v.id if isinstance(v, FakeDocumentRef) else str(v).split('/')[-1]
            actual = doc_id
            value = [key(v) for v in value] if op in ('in', 'not-in') else key(value)
        else:
            actual = _get_field(data, field_path)
        if op == '==':
            return actual == value
        if op == '!=':
            return actual != value
        if op == 'in':
            return actual in value
        if op == 'not-in':
            return actual not in value
        if op == 'array_contains':
            return isinstance(actual, list) and value in actual
        if actual is None:
            return False
        return {'<': actual < value, '<=': actual <= value,
                '>': actual > value, '>=': actual >= value}[op]

    def _documents(self):
        depth = len(self._collection_path) + 1
        docs = []
        for path, data in self._db.store.items():
            if len(path) != depth or path[:-1] != self._collection_path:
                continue
            if all(self._matches(path[-1], data, f, op, v) for f, op, v in self._filters):
                docs.append((path, data))
        for field_path, descending in reversed(self._orders):
            docs.sort(key=lambda item: (_get_field(item[1], field_path) is None,
                                        _get_field(item[1], field_path)),
                      reverse=descending)
        if self._limit is not None:
            docs = docs[:self._limit]
        return [FakeSnapshot(FakeDocumentRef(self._db, path), copy.deepcopy(data)) for path, data in docs]

    def stream(self, transaction=None):
        return iter(self._documents())

    def get(self, transaction=None):
        return self._documents()

    def count(self):
        query = self
        return SimpleNamespace(get=lambda: [[FakeAggregationResult(len(query._documents()))]])

    def on_snapshot(self, callback):
        watch = FakeWatch(self, callback)
        self._db.watches.append(watch)
        watch.fire()
        return watch


class FakeCollectionRef(FakeQuery):
    def __init__(self, db, path):
        super().__init__(db, path)

    @property
    def id(self):
        return self._collection_path[-1]

    def document(self, document_id=None):
        return FakeDocumentRef(self._db, self._collection_path + (document_id or uuid.uuid4().hex[:20],))


class FakeWatch:
    def __init__(self, query, callback):
        self.query = query
        self.callback = callback
        self.active = True

    def fire(self):
        if self.active:
            self.callback(self.query._documents(), [], datetime.now(timezone.utc))

    def unsubscribe(self):
        self.active = False


class FakeBatch:
    def __init__(self, db):
        self._db = db
        self._ops = []

    def set(self, ref, data, merge=False):
        self._ops.append((ref.path_tuple, 'set', data, merge))

    def update(self, ref, data):
        self._ops.append((ref.path_tuple, 'update', data, False))

    def delete(self, ref):
        self._ops.append((ref.path_tuple, 'delete', None, False))

    def commit(self):
        for path, op, data, merge in self._ops:
            self._db._write(path, op, data, merge=merge)
        self._db.batch_commits += 1
        self._ops = []


class FakeTransaction(FakeBatch):
    """쓰기를 모아 두지 않고 바로 반영하는 트랜잭션"""
    def set(self, ref, data, merge=False):
        self._db._write(ref.path_tuple, 'set', data, merge=merge)

    def update(self, ref, data):
        self._db._write(ref.path_tuple, 'update', data)

    def delete(self, ref):
        self._db._write(ref.path_tuple, 'delete')


class FakeFirestore:
    def __init__(self):
        self.store = {}
        self.watches = []
        self.write_count = 0
        self.batch_commits = 0
        self.fail_writes_for = set()  # 이 컬렉션 이름에 대한 쓰기는 실패합니다

    def collection(self, name):
        return FakeCollectionRef(self, (name,))

    def batch(self):
        return FakeBatch(self)

    def transaction(self):
        return FakeTransaction(self)

    def _write(self, path, op, data=None, merge=False):
        if path[-2] in self.fail_writes_for:
            raise RuntimeError(f"write to {path[-2]} failed")
        if op == 'set':
            if merge and path in self.store:
                _deep_merge(self.store[path], data)
            else:
                self.store[path] = copy.deepcopy(_resolve(data))
        elif op == 'update':
            if path not in self.store:
                raise NotFound(f"No document to update: {'/'.join(path)}")
            doc = self.store[path]
            for key, value in data.items():
                parts = key.split('.')
                target = doc
                for part in parts[:-1]:
                    target = target.setdefault(part, {})
                target[parts[-1]] = _resolve(value, target.get(parts[-1]))
        elif op == 'delete':
            self.store.pop(path, None)
        self.write_count += 1
        for watch in list(self.watches):
            if watch.query._collection_path == path[:-1]:
                watch.fire()

    # --- 테스트 편의 함수 ---
    def seed(self, path: str, data: dict):
        self.store[tuple(path.split('/'))] = copy.deepcopy(data)

    def data(self, path: str):
        return copy.deepcopy(self.store.get(tuple(path.split('/'))))


def seed_user(db: FakeFirestore, uid: str, display_name: str = None, **public):
    public_data = {'displayName': display_name or f"User_{uid[:6]}", **public}
    db.seed(f"users/{uid}", {
        'public': public_data,
        'private': {'joinedAt': datetime(2024, 1, 1, tzinfo=timezone.utc)},
        'stats': {'worksCount': 0, 'questionsCount': 0},
    })


def seed_follow(db: FakeFirestore, follower: str, target: str):
    created = datetime(2024, 1, 1, tzinfo=timezone.utc)
    db.seed(f"following/{follower}/users/{target}", {'uid': target, 'createdAt': created})
    db.seed(f"followers/{target}/users/{follower}", {'uid': follower, 'createdAt': created})


@pytest.fixture(autouse=True)
def plain_transactions(monkeypatch):
    """FakeTransaction 은 재시도가 필요 없으므로 transactional 데코레이터를 그대로 통과시킵니다."""
    monkeypatch.setattr(firebase_admin.firestore, 'transactional', lambda func: func)


@pytest.fixture
def fake_db():
    return FakeFirestore()


@pytest.fixture
def scheduler():
    return MagicMock()


@pytest.fixture
def app(fake_db, scheduler):
    from shaka import create_app
    app = create_app('testing', db=fake_db, scheduler=scheduler)
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    def _headers(user_id: str):
        with app.app_context():
            token = create_access_token(identity=user_id)
        return {'Authorization': f'Bearer {token}'}
    return _headers
