# =====================================================================================
# --- shaka/scripts/backfill_users.py ---
# =====================================================================================
"""
기존 'users/{uid}' 문서를 public/private/stats 구조로 옮기는 백필 스크립트.

사용법:
    shaka-backfill-users --dry-run
    shaka-backfill-users --credentials path/to/service-account.json
    shaka-backfill-users --display-names   # 게시물 displayName 만 다시 맞춤
"""
import argparse
import json
import os
import sys
import time
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List, Tuple

import firebase_admin
from firebase_admin import credentials, firestore, auth as firebase_auth

from shaka.api.posts.services import POST_COLLECTIONS
from shaka.api.users.services import profile_display_name, update_posts_display_name
from shaka.models.user import default_display_name
from shaka.utils.datetime_utils import DateTimeUtils

# --- 설정 ---
BATCH_SIZE = 500          # Firestore 배치 한 번의 최대 쓰기 수
RATE_LIMIT_DELAY = 1.0    # 배치 사이 대기 시간(초)
AUTH_PAGE_SIZE = 1000     # Firebase Auth 사용자 목록 페이지 크기


def is_migrated(data: Optional[Dict[str, Any]]) -> bool:
    """이미 새 구조로 옮겨진 문서인지 확인합니다."""
    data = data or {}
    return bool((data.get('public') or {}).get('displayName')
                and (data.get('private') or {}).get('joinedAt')
                and data.get('stats'))


def backup_users(db, backup_dir: str) -> Tuple[Dict[str, Dict[str, Any]], str]:
    """users 컬렉션 전체를 JSON 파일로 저장하고 (백업 데이터, 파일 경로) 를 돌려줍니다."""
    print("백업을 시작합니다...")
    backup = {doc.id: doc.to_dict() or {} for doc in db.collection('users').stream()}

    os.makedirs(backup_dir, exist_ok=True)
    timestamp = DateTimeUtils.to_timestamp_ms(DateTimeUtils.now())
    backup_path = os.path.join(backup_dir, f"backup-users-{timestamp}.json")
    with open(backup_path, 'w', encoding='utf-8') as f:
        json.dump(backup, f, ensure_ascii=False, indent=2, default=str)
    print(f"백업 저장 완료: {backup_path}")
    return backup, backup_path


def fetch_auth_users(auth_client=firebase_auth) -> Dict[str, Any]:
    """Firebase Auth 사용자를 1000명씩 페이지 단위로 모두 가져옵니다."""
    auth_users = {}
    page = auth_client.list_users(max_results=AUTH_PAGE_SIZE)
    while page:
        for user in page.users:
            auth_users[user.uid] = user
        page = page.get_next_page()
    return auth_users


def calculate_user_stats(db, user_id: str) -> Dict[str, int]:
    counts = {}
    for collection in POST_COLLECTIONS.values():
        result = db.collection(collection).where('userID', '==', user_id).count().get()
        counts[f"{collection}Count"] = result[0][0].value or 0
    return counts


def build_user_update(db, user_id: str, existing: Optional[Dict[str, Any]], auth_user=None) -> Dict[str, Any]:
    """
    기존 문서와 Auth 정보로 새 구조의 문서 내용을 만듭니다.
    값은 기존 public/private 필드, 예전 최상위 필드, Auth 정보, 기본값 순으로 고릅니다.
    """
    existing = existing or {}
    public = existing.get('public') or {}
    private = existing.get('private') or {}

    display_name = (existing.get('displayName') or public.get('displayName')
                    or getattr(auth_user, 'display_name', None) or default_display_name(user_id))

    joined_at = private.get('joinedAt') or existing.get('joinedAt')
    if isinstance(joined_at, str):
        joined_at = DateTimeUtils.parse_iso_datetime(joined_at)
    if not joined_at:
        creation_ms = getattr(getattr(auth_user, 'user_metadata', None), 'creation_timestamp', None)
        joined_at = (datetime.fromtimestamp(creation_ms / 1000, tz=timezone.utc)
                     if creation_ms else DateTimeUtils.now())

    return {
        'public': {
            'displayName': display_name,
            'photoURL': public.get('photoURL') or existing.get('photoURL') or getattr(auth_user, 'photo_url', None),
            'bio': public.get('bio') or existing.get('bio'),
            'links': public.get('links') or existing.get('links'),
        },
        'private': {
            'joinedAt': joined_at,
            'email': private.get('email') or existing.get('email') or getattr(auth_user, 'email', None),
        },
        'stats': existing.get('stats') or calculate_user_stats(db, user_id),
    }


def run_backfill(db, backup: Dict[str, Dict[str, Any]], auth_users: Dict[str, Any],
                 dry_run: bool = False, sleep=time.sleep) -> Dict[str, List]:
    """
    백업 데이터의 사용자들을 BATCH_SIZE 씩 나눠 처리합니다.
    dry_run 이면 Firestore 에 아무것도 쓰지 않습니다.
    """
    user_ids = list(backup.keys())
    results = {'success': [], 'failed': [], 'skipped': []}
    total_batches = (len(user_ids) + BATCH_SIZE - 1) // BATCH_SIZE

    for i in range(0, len(user_ids), BATCH_SIZE):
        batch = None if dry_run else db.batch()
        pending = 0
        print(f"\n배치 처리 중 {i // BATCH_SIZE + 1}/{total_batches}")

        for user_id in user_ids[i:i + BATCH_SIZE]:
            existing = backup[user_id]
            if is_migrated(existing):
                print(f"  건너뜀 {user_id} (이미 변환됨)")
                results['skipped'].append(user_id)
                continue
            try:
                updates = build_user_update(db, user_id, existing, auth_users.get(user_id))
                stats = updates['stats']
                print(f"  처리 {user_id}: displayName={updates['public']['displayName']}, "
                      f"works={stats.get('worksCount', 0)}, questions={stats.get('questionsCount', 0)}")
                if not dry_run:
                    batch.set(db.collection('users').document(user_id), updates, merge=True)
                    pending += 1
                results['success'].append(user_id)
            except Exception as e:
                print(f"  실패 {user_id}: {e}")
                results['failed'].append({'user_id': user_id, 'error': str(e)})

        if pending:
            batch.commit()
            print("  배치 커밋 완료")

        if i + BATCH_SIZE < len(user_ids):
            print(f"  다음 배치까지 {RATE_LIMIT_DELAY}초 대기...")
            sleep(RATE_LIMIT_DELAY)

    return results


def verify_migration(db, user_ids: List[str]) -> int:
    """변환된 사용자 중 public.displayName 이 없는 수를 셉니다."""
    missing = 0
    for user_id in user_ids:
        data = db.collection('users').document(user_id).get().to_dict() or {}
        if not (data.get('public') or {}).get('displayName'):
            missing += 1
            print(f"  경고: {user_id} 에 displayName 이 없습니다")
    return missing


def backfill_display_names(db, dry_run: bool = False) -> int:
    """게시물의 displayName 을 각 사용자의 현재 이름과 맞춥니다."""
    total = 0
    for user_doc in db.collection('users').stream():
        name = profile_display_name(user_doc.id, user_doc.to_dict())
        if dry_run:
            for collection in POST_COLLECTIONS.values():
                for doc in db.collection(collection).where('userID', '==', user_doc.id).stream():
                    if (doc.to_dict() or {}).get('displayName') != name:
                        total += 1
        else:
            total += update_posts_display_name(db, user_doc.id, name, only_stale=True)
    return total


def print_summary(results: Dict[str, List]) -> None:
    print("\n" + "=" * 50)
    print("결과:")
    print(f"  성공: {len(results['success'])}명")
    print(f"  건너뜀: {len(results['skipped'])}명 (이미 변환됨)")
    print(f"  실패: {len(results['failed'])}명")
    for failure in results['failed']:
        print(f"    - {failure['user_id']}: {failure['error']}")


def _init_firestore(credentials_path: Optional[str]):
    if not firebase_admin._apps:
        if not credentials_path or not os.path.exists(credentials_path):
            raise FileNotFoundError(f"서비스 계정 키 파일을 찾을 수 없습니다: {credentials_path}")
        firebase_admin.initialize_app(credentials.Certificate(credentials_path))
    return firestore.client()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="users 문서를 public/private/stats 구조로 백필합니다.")
    parser.add_argument('--dry-run', action='store_true', help="Firestore 에 쓰지 않고 결과만 출력합니다.")
    parser.add_argument('--credentials', default=os.getenv('FIREBASE_CREDENTIALS_PATH'),
                        help="Firebase 서비스 계정 키 경로")
    parser.add_argument('--backup-dir', default='backups', help="백업 JSON 을 저장할 디렉터리")
    parser.add_argument('--display-names', action='store_true',
                        help="사용자 문서 대신 게시물의 displayName 만 다시 맞춥니다.")
    return parser.parse_args(argv)


def main(argv=None, db=None, auth_client=firebase_auth) -> int:
    args = parse_args(argv)
    print("===== 사용자 데이터 백필 시작 =====")
    print(f"모드: {'DRY RUN' if args.dry_run else 'PRODUCTION'}")

    try:
        db = db or _init_firestore(args.credentials)

        if args.display_names:
            updated = backfill_display_names(db, dry_run=args.dry_run)
            print(f"displayName 갱신 {'대상' if args.dry_run else '완료'}: 게시물 {updated}건")
            return 0

        backup, _ = backup_users(db, args.backup_dir)
        print(f"처리할 사용자 {len(backup)}명")

        print("Auth 사용자 조회 중...")
        auth_users = fetch_auth_users(auth_client)
        print(f"Auth 사용자 {len(auth_users)}명")

        results = run_backfill(db, backup, auth_users, dry_run=args.dry_run)
        print_summary(results)

        if args.dry_run:
            print("\nDRY RUN 완료 - 변경 사항이 없습니다.")
            print("실제로 반영하려면 --dry-run 없이 다시 실행하세요.")
        else:
            print("\n검증 중...")
            missing = verify_migration(db, results['success'])
            print(f"검증 완료: displayName 이 없는 사용자 {missing}명")
    except Exception as e:
        print(f"\n치명적 오류: {e}")
        return 1

    print("\n===== 백필 완료 =====")
    return 0


if __name__ == '__main__':
    sys.exit(main())
