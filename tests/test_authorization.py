"""Authorization policy tests (permission, role restrictions, ownership)."""

import redis

from roster.models.role import Permission, Role
from roster.services.cache_service import CacheService
from roster.services.role_service import PermissionCache, RoleService


class DictCache(CacheService):
    """In-process stand-in for Redis."""

    def __init__(self):
        super().__init__("redis://unused")
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ttl_seconds=600):
        self.store[key] = value

    def delete(self, key):
        self.store.pop(key, None)

    def invalidate_pattern(self, pattern):
        prefix = pattern.rstrip("*")
        for key in [k for k in self.store if k.startswith(prefix)]:
            del self.store[key]


def _denied(response, detail):
    assert response.status_code == 403, response.text
    assert response.json() == {"detail": detail}


class TestTokenChecks:

    def test_no_token(self, client):
        _denied(client.get("/api/users/1"), "Authorization token required")

    def test_garbage_token(self, client, auth_header):
        _denied(client.get("/api/users/1", headers=auth_header("abc.def.ghi")), "Invalid or expired token")

    def test_refresh_token_is_not_an_access_token(self, client, make_user, login_as, auth_header):
        user = make_user("sam@example.com")
        tokens = login_as("sam@example.com")
        _denied(
            client.get(f"/api/users/{user.id}", headers=auth_header(tokens["refreshToken"])),
            "Invalid or expired token",
        )

    def test_deleted_user(self, client, db, make_user, login_as, auth_header):
        user = make_user("sam@example.com")
        tokens = login_as("sam@example.com")
        db.delete(user)
        db.commit()
        _denied(
            client.get("/api/auth/profile", headers=auth_header(tokens["accessToken"])),
            "User not found",
        )


class TestPolicies:

    def test_student_reads_self(self, client, make_user, login_as, auth_header):
        user = make_user("sam@example.com")
        token = login_as("sam@example.com")["accessToken"]
        response = client.get(f"/api/users/{user.id}", headers=auth_header(token))
        assert response.status_code == 200
        assert response.json()["email"] == "sam@example.com"

    def test_student_cannot_read_someone_else(self, client, make_user, login_as, auth_header):
        make_user("sam@example.com")
        other = make_user("kim@example.com")
        token = login_as("sam@example.com")["accessToken"]
        _denied(
            client.get(f"/api/users/{other.id}", headers=auth_header(token)),
            "You can only access your own data",
        )

    def test_instructor_is_held_to_ownership_too(self, client, make_user, login_as, auth_header):
        make_user("ida@example.com", role="instructor")
        other = make_user("kim@example.com")
        token = login_as("ida@example.com")["accessToken"]
        _denied(
            client.get(f"/api/users/{other.id}", headers=auth_header(token)),
            "You can only access your own data",
        )

    def test_admin_bypasses_ownership(self, client, make_user, login_as, auth_header):
        make_user("root@example.com", role="admin")
        other = make_user("kim@example.com")
        token = login_as("root@example.com")["accessToken"]
        response = client.get(f"/api/users/{other.id}", headers=auth_header(token))
        assert response.status_code == 200
        assert response.json()["email"] == "kim@example.com"

    def test_missing_permission_wins_over_ownership(self, client, db, make_user, login_as, auth_header):
        db.add(Role(name="guest", description="No permissions", permissions=[]))
        db.commit()
        user = make_user("gus@example.com", role="guest")
        token = login_as("gus@example.com")["accessToken"]
        _denied(
            client.get(f"/api/users/{user.id}", headers=auth_header(token)),
            "Missing required permission 'read'",
        )

    def test_student_lacks_delete(self, client, make_user, login_as, auth_header):
        user = make_user("sam@example.com")
        token = login_as("sam@example.com")["accessToken"]
        _denied(
            client.delete(f"/api/users/{user.id}", headers=auth_header(token)),
            "Missing required permission 'delete'",
        )

    def test_students_restricted_from_admin_routes(self, client, make_user, login_as, auth_header):
        make_user("sam@example.com")
        token = login_as("sam@example.com")["accessToken"]
        _denied(
            client.get("/api/users", headers=auth_header(token)),
            "Students are not allowed to access this resource",
        )

    def test_instructors_restricted_from_admin_routes(self, client, make_user, login_as, auth_header):
        make_user("ida@example.com", role="instructor")
        token = login_as("ida@example.com")["accessToken"]
        _denied(
            client.get("/api/users", headers=auth_header(token)),
            "Instructors are not allowed to access this resource",
        )

    def test_admin_lists_users(self, client, make_user, login_as, auth_header):
        make_user("root@example.com", role="admin")
        make_user("sam@example.com")
        token = login_as("root@example.com")["accessToken"]
        response = client.get("/api/users", headers=auth_header(token))
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert {u["email"] for u in body["users"]} == {"root@example.com", "sam@example.com"}

    def test_role_is_resolved_per_request(self, client, make_user, login_as, auth_header):
        make_user("root@example.com", role="admin")
        student = make_user("sam@example.com")
        admin_token = login_as("root@example.com")["accessToken"]
        student_token = login_as("sam@example.com")["accessToken"]

        promoted = client.put(
            f"/api/users/{student.id}", json={"role": "instructor"}, headers=auth_header(admin_token)
        )
        assert promoted.status_code == 200
        assert promoted.json()["role"] == "instructor"

        # The old token still says "student"; the database decides
        _denied(
            client.get("/api/users", headers=auth_header(student_token)),
            "Instructors are not allowed to access this resource",
        )

    def test_non_admin_cannot_change_own_role(self, client, make_user, login_as, auth_header):
        user = make_user("sam@example.com")
        token = login_as("sam@example.com")["accessToken"]
        _denied(
            client.put(f"/api/users/{user.id}", json={"role": "admin"}, headers=auth_header(token)),
            "Only administrators can change roles",
        )

    def test_student_updates_own_profile(self, client, make_user, login_as, auth_header):
        user = make_user("sam@example.com")
        token = login_as("sam@example.com")["accessToken"]
        response = client.put(
            f"/api/users/{user.id}",
            json={"firstName": "Samuel", "phone": "+15550100"},
            headers=auth_header(token),
        )
        assert response.status_code == 200
        assert response.json()["firstName"] == "Samuel"
        assert response.json()["phone"] == "+15550100"


class TestPermissionCache:

    def test_disabled_cache_always_misses(self):
        cache = PermissionCache(DictCache(), enabled=False)
        cache.put(1, ["read"])
        assert cache.get(1) is None

    def test_lookups_are_cached_until_invalidated(self, db):
        cache = PermissionCache(DictCache(), ttl_seconds=60, enabled=True)
        service = RoleService(cache)
        student = db.query(Role).filter(Role.name == "student").one()

        assert service.permissions_for(db, student) == {"read", "update"}
        assert cache.get(student.id) == ["read", "update"]

        # A write that bypasses the service is not seen until invalidation
        student.permissions = [p for p in student.permissions if p.name == "read"]
        db.commit()
        assert service.permissions_for(db, student) == {"read", "update"}

        service.update_role(db, student.id, permission_names=["read"])
        assert cache.get(student.id) is None
        assert service.permissions_for(db, student) == {"read"}

    def test_invalidate_all(self):
        cache = PermissionCache(DictCache(), enabled=True)
        cache.put(1, ["read"])
        cache.put(2, ["delete"])
        cache.invalidate()
        assert cache.get(1) is None
        assert cache.get(2) is None

    def test_renaming_a_permission_invalidates(self, db):
        cache = PermissionCache(DictCache(), enabled=True)
        service = RoleService(cache)
        student = db.query(Role).filter(Role.name == "student").one()
        assert service.permissions_for(db, student) == {"read", "update"}

        update = db.query(Permission).filter(Permission.name == "update").one()
        service.update_permission(db, update.id, name="edit")

        assert cache.get(student.id) is None
        assert service.permissions_for(db, student) == {"edit", "read"}

    def test_deleting_a_permission_invalidates(self, db):
        cache = PermissionCache(DictCache(), enabled=True)
        service = RoleService(cache)
        student = db.query(Role).filter(Role.name == "student").one()
        assert service.permissions_for(db, student) == {"read", "update"}

        update = db.query(Permission).filter(Permission.name == "update").one()
        service.delete_permission(db, update.id)

        assert cache.get(student.id) is None
        db.expire_all()
        assert service.permissions_for(db, student) == {"read"}


class DownRedis:
    """Client whose every call fails as if Redis were unreachable."""

    def __init__(self):
        self.calls = 0

    def _fail(self, *args, **kwargs):
        self.calls += 1
        raise redis.ConnectionError("Connection refused")

    get = setex = delete = scan_iter = ping = _fail


class TestCacheOutage:

    def _cache(self, retry_after_seconds):
        cache = CacheService("redis://unused", retry_after_seconds=retry_after_seconds)
        cache._client = DownRedis()
        return cache

    def test_errors_read_as_misses(self, db):
        service = RoleService(PermissionCache(self._cache(retry_after_seconds=0), enabled=True))
        student = db.query(Role).filter(Role.name == "student").one()
        assert service.permissions_for(db, student) == {"read", "update"}

    def test_outage_skips_redis_until_retry_window_passes(self, db):
        cache = self._cache(retry_after_seconds=60)
        service = RoleService(PermissionCache(cache, enabled=True))
        student = db.query(Role).filter(Role.name == "student").one()

        for _ in range(5):
            assert service.permissions_for(db, student) == {"read", "update"}

        # Only the first lookup reached the client
        assert cache._client.calls == 1
        assert cache.available is False

    def test_failed_health_check_opens_the_window(self):
        cache = self._cache(retry_after_seconds=60)
        assert cache.health_check() is False
        assert cache.get("role_permissions:1") is None
        assert cache._client.calls == 1

    def test_zero_window_retries_every_time(self):
        cache = self._cache(retry_after_seconds=0)
        cache.get("a")
        cache.get("b")
        assert cache._client.calls == 2
