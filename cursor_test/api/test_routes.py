"""
HTTP 接口测试

通过 httpx.AsyncClient + ASGITransport 直接调用 FastAPI 应用，数据库为内存 SQLite。

Pytest 命令示例：
================

# 运行整个测试文件
pytest cursor_test/api/test_routes.py -v

# 运行特定的测试类
pytest cursor_test/api/test_routes.py::TestReminderRoutes

# 运行特定的测试方法
pytest cursor_test/api/test_routes.py::TestReminderRoutes::test_mark_taken_completes_reminder
"""
import pytest

API = "/api/v1"


async def _create_medication(client, headers, **body):
    payload = {"name": "Aspirin", "dosage": "100mg"}
    payload.update(body)
    response = await client.post(f"{API}/medications", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def _create_reminder(client, headers, medications, date="2025-06-13"):
    response = await client.post(
        f"{API}/reminders",
        json={"date": date, "medications": medications},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestAuthAndErrors:
    """鉴权与错误响应测试类"""

    @pytest.mark.asyncio
    async def test_missing_user_header_returns_401(self, client):
        response = await client.get(f"{API}/medications")

        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_request_validation_returns_400(self, client, auth_headers):
        """
        测试用例：缺少必填字段 name

        验证：
        - 返回 400，错误体包含 error / code / detail
        """
        response = await client.post(f"{API}/medications", json={"dosage": "1mg"}, headers=auth_headers)

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert "error" in body
        assert body["detail"]["errors"]

    @pytest.mark.asyncio
    async def test_unknown_medication_returns_404(self, client, auth_headers):
        response = await client.get(f"{API}/medications/99999", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestMedicationRoutes:
    """药品与计划接口测试类"""

    @pytest.mark.asyncio
    async def test_create_uses_camel_case_and_accepts_snake_case(self, client, auth_headers):
        """
        测试用例：请求体混用 camelCase 与 snake_case，并一并录入库存

        验证：
        - 两种写法都被接受，响应统一为 camelCase
        - 库存随药品一起创建
        """
        # Act（执行）
        body = await _create_medication(
            client,
            auth_headers,
            side_effects="nausea",
            activeIngredient="acetylsalicylic acid",
            remainingQuantity=4,
            refillThreshold=5,
        )

        # Assert（断言）
        assert body["sideEffects"] == "nausea"
        assert body["activeIngredient"] == "acetylsalicylic acid"
        assert body["icon"] == "pill"
        assert body["color"] == "#FFFFFF"
        assert body["inventory"]["remainingQuantity"] == 4
        assert body["isLowStock"] is True
        assert "side_effects" not in body

    @pytest.mark.asyncio
    async def test_update_with_schedule_fields(self, client, auth_headers):
        """
        测试用例：PUT 药品时同时给出计划字段

        验证：
        - 没有计划时创建一个，之后的 PUT 更新同一个计划
        """
        # Arrange（准备）
        medication = await _create_medication(client, auth_headers)
        url = f"{API}/medications/{medication['id']}"

        # Act（执行）
        first = await client.put(
            url,
            json={"frequency": "daily", "startDate": "2025-06-01", "times": [{"timeOfDay": "morning"}]},
            headers=auth_headers,
        )
        second = await client.put(url, json={"whenToTake": "饭后", "color": "#00FF00"}, headers=auth_headers)

        # Assert（断言）
        assert first.status_code == 200, first.text
        assert second.status_code == 200, second.text
        schedules = second.json()["schedules"]
        assert len(schedules) == 1
        assert schedules[0]["whenToTake"] == "饭后"
        assert schedules[0]["times"][0]["specificTime"] == "08:00:00"
        assert second.json()["color"] == "#00FF00"

    @pytest.mark.asyncio
    async def test_schedule_fields_without_times_do_not_block_create(self, client, auth_headers):
        """
        测试用例：创建药品时只给出 notes / frequency 等计划字段，没有时间槽

        验证：
        - 药品照常创建（201），不生成缺少时间槽的计划
        - 频率为 as_needed 时没有时间槽也会创建计划
        """
        # Act（执行）
        plain = await _create_medication(client, auth_headers, notes="with food", frequency="daily")
        as_needed = await _create_medication(client, auth_headers, name="Ibuprofen", frequency="as_needed")

        # Assert（断言）
        assert plain["name"] == "Aspirin"
        assert plain["schedules"] == []
        assert len(as_needed["schedules"]) == 1
        assert as_needed["schedules"][0]["frequency"] == "as_needed"
        assert as_needed["schedules"][0]["times"] == []

    @pytest.mark.asyncio
    async def test_schedule_routes(self, client, auth_headers):
        # Arrange（准备）
        medication = await _create_medication(client, auth_headers)
        url = f"{API}/medications/{medication['id']}/schedules"

        # Act（执行）
        created = await client.post(
            url,
            json={"frequency": "weekly", "startDate": "2025-06-01", "times": [{"specificTime": "21:00"}]},
            headers=auth_headers,
        )
        duplicate = await client.post(
            url,
            json={"times": [{"specificTime": "08:00"}, {"specificTime": "08:00:00"}]},
            headers=auth_headers,
        )
        updated = await client.put(
            f"{API}/schedules/{created.json()['id']}",
            json={"times": [{"specificTime": "20:00"}, {"specificTime": "07:30"}]},
            headers=auth_headers,
        )
        listed = await client.get(url, headers=auth_headers)

        # Assert（断言）
        assert created.status_code == 201
        assert created.json()["frequency"] == "weekly"
        assert duplicate.status_code == 409
        assert duplicate.json()["code"] == "CONFLICT"
        assert [t["specificTime"] for t in updated.json()["times"]] == ["07:30:00", "20:00:00"]
        assert len(listed.json()) == 1

    @pytest.mark.asyncio
    async def test_inventory_adjust(self, client, auth_headers):
        """
        测试用例：补药后扣减超过剩余数量

        验证：
        - 补药记录补药日期
        - 数量截断为 0
        """
        medication = await _create_medication(client, auth_headers)
        url = f"{API}/medications/{medication['id']}/inventory"

        missing = await client.get(url, headers=auth_headers)
        refilled = await client.post(f"{url}/adjust", json={"delta": 3}, headers=auth_headers)
        drained = await client.post(f"{url}/adjust", json={"delta": -10}, headers=auth_headers)

        assert missing.status_code == 404
        assert refilled.json()["remainingQuantity"] == 3
        assert refilled.json()["lastRefillDate"] is not None
        assert drained.json()["remainingQuantity"] == 0
        assert drained.json()["isLowStock"] is True

    @pytest.mark.asyncio
    async def test_delete_referenced_medication_conflicts(self, client, auth_headers):
        medication = await _create_medication(client, auth_headers)
        await _create_reminder(client, auth_headers, [{"medicationId": medication["id"]}])

        response = await client.delete(f"{API}/medications/{medication['id']}", headers=auth_headers)

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_foreign_medication_hidden(self, client, auth_headers, other_auth_headers):
        medication = await _create_medication(client, auth_headers)

        response = await client.get(f"{API}/medications/{medication['id']}", headers=other_auth_headers)
        listed = await client.get(f"{API}/medications", headers=other_auth_headers)

        assert response.status_code == 404
        assert listed.json() == []


class TestReminderRoutes:
    """提醒与剂量状态接口测试类"""

    @pytest.mark.asyncio
    async def test_create_and_list_by_date(self, client, auth_headers):
        """
        测试用例：Aspirin 每日早 8 点，创建 2025-06-13 的提醒后按日期查询

        验证：
        - 恰好一个提醒，一条 pending 剂量，带有药品展示字段
        """
        # Arrange（准备）
        medication = await _create_medication(client, auth_headers)
        await client.post(
            f"{API}/medications/{medication['id']}/schedules",
            json={"frequency": "daily", "times": [{"timeOfDay": "morning", "specificTime": "08:00"}]},
            headers=auth_headers,
        )

        # Act（执行）
        created = await _create_reminder(
            client, auth_headers, [{"medicationId": medication["id"], "scheduleTime": "08:00"}]
        )
        response = await client.get(f"{API}/reminders", params={"date": "2025-06-13"}, headers=auth_headers)

        # Assert（断言）
        assert created["boundCount"] == 1
        assert created["failedCount"] == 0
        reminders = response.json()
        assert len(reminders) == 1
        assert reminders[0]["date"] == "2025-06-13"
        assert reminders[0]["isCompleted"] is False
        entry = reminders[0]["medications"][0]
        assert entry["status"] == "pending"
        assert entry["scheduleTime"] == "08:00:00"
        assert entry["medicationName"] == "Aspirin"
        assert entry["medicationIcon"] == "pill"

    @pytest.mark.asyncio
    async def test_mark_taken_completes_reminder(self, client, auth_headers):
        """
        测试用例：把唯一剂量标记为 taken

        验证：
        - 响应中 reminderCompleted 为 True
        - 用药历史新增一条
        """
        # Arrange（准备）
        medication = await _create_medication(client, auth_headers, remainingQuantity=10)
        created = await _create_reminder(
            client, auth_headers, [{"medicationId": medication["id"], "scheduleTime": "08:00"}]
        )
        reminder = created["reminder"]
        entry_id = reminder["medications"][0]["id"]

        # Act（执行）
        response = await client.put(
            f"{API}/reminders/{reminder['id']}/medication/{entry_id}",
            json={"status": "taken"},
            headers=auth_headers,
        )
        history = await client.get(
            f"{API}/history", params={"medication_id": medication["id"]}, headers=auth_headers
        )

        # Assert（断言）
        assert response.status_code == 200, response.text
        body = response.json()
        assert body["success"] is True
        assert body["status"] == "taken"
        assert body["takenAt"] is not None
        assert body["reminderCompleted"] is True
        assert body["remainingQuantity"] == 9
        assert body["reminder"]["status"] == "completed"
        records = history.json()
        assert len(records) == 1
        assert records[0]["takenDate"] == "2025-06-13"
        assert records[0]["status"] == "taken"

    @pytest.mark.asyncio
    async def test_taken_with_empty_inventory(self, client, auth_headers):
        """
        测试用例：库存为 0 时服用

        验证：
        - 状态变更成功，库存保持 0
        """
        medication = await _create_medication(client, auth_headers, remainingQuantity=0)
        created = await _create_reminder(client, auth_headers, [{"medicationId": medication["id"]}])
        reminder = created["reminder"]

        response = await client.put(
            f"{API}/reminders/{reminder['id']}/medication/{reminder['medications'][0]['id']}",
            json={"status": "taken"},
            headers=auth_headers,
        )
        inventory = await client.get(f"{API}/medications/{medication['id']}/inventory", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["remainingQuantity"] == 0
        assert inventory.json()["remainingQuantity"] == 0

    @pytest.mark.asyncio
    async def test_partial_failure_reported(self, client, auth_headers):
        """
        测试用例：一个有效药品加一个不存在的药品

        验证：
        - 提醒创建成功，只含有效药品，失败项在 outcomes 中给出
        """
        medication = await _create_medication(client, auth_headers)

        created = await _create_reminder(
            client,
            auth_headers,
            [{"medicationId": medication["id"]}, {"medicationId": 99999}],
        )

        assert created["boundCount"] == 1
        assert created["failedCount"] == 1
        assert len(created["reminder"]["medications"]) == 1
        assert created["outcomes"][1]["success"] is False
        assert created["outcomes"][1]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_malformed_entry_fails_alone(self, client, auth_headers):
        """
        测试用例：药品ID或时间格式错误的条目与有效条目一起提交

        验证：
        - 请求整体成功（201），不是 400
        - 格式错误的条目在 outcomes 中单独失败，有效条目照常绑定
        """
        medication = await _create_medication(client, auth_headers)

        created = await _create_reminder(
            client,
            auth_headers,
            [
                {"medicationId": medication["id"]},
                {"medicationId": "abc"},
                {"medicationId": medication["id"], "scheduleTime": 930},
            ],
        )

        assert created["boundCount"] == 1
        assert created["failedCount"] == 2
        assert [o["success"] for o in created["outcomes"]] == [True, False, False]
        assert created["outcomes"][1]["code"] == "NOT_FOUND"
        assert created["outcomes"][1]["medicationId"] is None
        assert created["outcomes"][2]["code"] == "VALIDATION_ERROR"
        assert len(created["reminder"]["medications"]) == 1

    @pytest.mark.asyncio
    async def test_all_entries_failing_creates_nothing(self, client, auth_headers):
        response = await client.post(
            f"{API}/reminders",
            json={"date": "2025-06-13", "medications": [{"medicationId": 99998}, {"medicationId": 99999}]},
            headers=auth_headers,
        )
        listed = await client.get(f"{API}/reminders", headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert listed.json() == []

    @pytest.mark.asyncio
    async def test_invalid_date_and_status(self, client, auth_headers):
        medication = await _create_medication(client, auth_headers)
        created = await _create_reminder(client, auth_headers, [{"medicationId": medication["id"]}])
        reminder = created["reminder"]

        bad_date = await client.post(
            f"{API}/reminders",
            json={"date": "2025-02-30", "medications": [{"medicationId": medication["id"]}]},
            headers=auth_headers,
        )
        bad_status = await client.put(
            f"{API}/reminders/{reminder['id']}/medication/{reminder['medications'][0]['id']}",
            json={"status": "done"},
            headers=auth_headers,
        )
        bad_filter = await client.get(f"{API}/reminders", params={"status": "done"}, headers=auth_headers)

        assert bad_date.status_code == 400
        assert bad_status.status_code == 400
        assert bad_filter.status_code == 400

    @pytest.mark.asyncio
    async def test_foreign_reminder_hidden(self, client, auth_headers, other_auth_headers):
        """
        测试用例：其他用户访问和修改提醒

        验证：
        - 返回 404，不暴露提醒是否存在
        """
        medication = await _create_medication(client, auth_headers)
        created = await _create_reminder(client, auth_headers, [{"medicationId": medication["id"]}])
        reminder = created["reminder"]

        fetched = await client.get(f"{API}/reminders/{reminder['id']}", headers=other_auth_headers)
        updated = await client.put(
            f"{API}/reminders/{reminder['id']}/medication/{reminder['medications'][0]['id']}",
            json={"status": "taken"},
            headers=other_auth_headers,
        )

        assert fetched.status_code == 404
        assert updated.status_code == 404
        assert updated.json()["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_generate_and_delete(self, client, auth_headers):
        """
        测试用例：按计划生成区间内的提醒，重复生成，再删除

        验证：
        - 重复生成不产生新剂量
        - 删除后查询不到
        """
        # Arrange（准备）
        medication = await _create_medication(client, auth_headers)
        await client.post(
            f"{API}/medications/{medication['id']}/schedules",
            json={"startDate": "2025-06-01", "times": [{"specificTime": "08:00"}, {"specificTime": "20:00"}]},
            headers=auth_headers,
        )

        # Act（执行）
        generated = await client.post(
            f"{API}/reminders/generate",
            json={"startDate": "2025-06-01", "endDate": "2025-06-02"},
            headers=auth_headers,
        )
        repeated = await client.post(f"{API}/reminders/generate", json={"date": "2025-06-01"}, headers=auth_headers)

        # Assert（断言）
        assert generated.status_code == 200, generated.text
        assert [r["createdCount"] for r in generated.json()] == [2, 2]
        assert repeated.json()[0]["createdCount"] == 0
        assert repeated.json()[0]["skippedCount"] == 2

        reminder_id = generated.json()[0]["reminder"]["id"]
        deleted = await client.delete(f"{API}/reminders/{reminder_id}", headers=auth_headers)
        fetched = await client.get(f"{API}/reminders/{reminder_id}", headers=auth_headers)
        assert deleted.json()["success"] is True
        assert fetched.status_code == 404


class TestAdherenceRoutes:
    """依从性统计接口测试类"""

    @pytest.mark.asyncio
    async def test_summary(self, client, auth_headers):
        # Arrange（准备）
        medication = await _create_medication(client, auth_headers)
        created = await _create_reminder(
            client,
            auth_headers,
            [{"medicationId": medication["id"], "scheduleTime": "08:00"},
             {"medicationId": medication["id"], "scheduleTime": "20:00"}],
        )
        reminder = created["reminder"]
        morning, evening = [e["id"] for e in reminder["medications"]]
        await client.put(
            f"{API}/reminders/{reminder['id']}/medication/{morning}", json={"status": "taken"}, headers=auth_headers
        )
        await client.put(
            f"{API}/reminders/{reminder['id']}/medication/{evening}", json={"status": "missed"}, headers=auth_headers
        )

        # Act（执行）
        response = await client.get(
            f"{API}/adherence/summary",
            params={"start_date": "2025-06-01", "end_date": "2025-06-30"},
            headers=auth_headers,
        )

        # Assert（断言）
        assert response.status_code == 200, response.text
        body = response.json()
        assert body["total"] == 2
        assert body["counts"]["taken"] == 1
        assert body["counts"]["missed"] == 1
        assert body["adherenceRate"] == 0.5
        assert body["medications"][0]["name"] == "Aspirin"

    @pytest.mark.asyncio
    async def test_summary_reversed_range(self, client, auth_headers):
        response = await client.get(
            f"{API}/adherence/summary",
            params={"start_date": "2025-06-30", "end_date": "2025-06-01"},
            headers=auth_headers,
        )

        assert response.status_code == 400
