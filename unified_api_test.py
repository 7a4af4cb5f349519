#!/usr/bin/env python3
"""
患者管理系统API冒烟测试脚本
对运行中的服务依次调用所有API端点并报告错误

    BASE_URL=http://127.0.0.1:8000 python unified_api_test.py
"""
import os
import sys
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

BASE_URL = os.getenv("BASE_URL", "http://127.0.0.1:8000").rstrip("/")


@dataclass
class TestResult:
    success: bool
    endpoint: str
    method: str
    status_code: int
    response_time: float
    error_message: str = ""
    description: str = ""


class PatientAPITester:
    def __init__(self, base_url: str = BASE_URL):
        self.base_url = base_url
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        self.test_results = []
        self.error_results = []

    def test_endpoint(self, method: str, endpoint: str, data: Optional[Dict] = None,
                      expected_status: int = 200, description: str = "") -> Optional[requests.Response]:
        """测试单个API端点"""
        url = f"{self.base_url}{endpoint}"
        start_time = time.time()
        response = None
        try:
            response = self.session.request(method.upper(), url, json=data, timeout=10)
            response_time = time.time() - start_time
            ok = response.status_code == expected_status
            result = TestResult(
                success=ok,
                endpoint=endpoint,
                method=method,
                status_code=response.status_code,
                response_time=response_time,
                error_message="" if ok else response.text[:200],
                description=description,
            )
            if ok:
                print(f"✅ {method} {endpoint} - 成功 ({response_time:.2f}s)")
            else:
                print(f"❌ {method} {endpoint} - 失败: {response.status_code} (期望 {expected_status})")
        except requests.RequestException as e:
            result = TestResult(
                success=False,
                endpoint=endpoint,
                method=method,
                status_code=0,
                response_time=time.time() - start_time,
                error_message=str(e),
                description=description,
            )
            print(f"❌ {method} {endpoint} - 异常: {e}")

        self.test_results.append(result)
        if not result.success:
            self.error_results.append(result)
        return response

    @staticmethod
    def _data(response: Optional[requests.Response]) -> Any:
        if response is None:
            return None
        try:
            return response.json().get("data")
        except ValueError:
            return None

    def run(self) -> bool:
        print("🏥 患者管理系统API测试")
        print("=" * 50)

        tag = uuid.uuid4().hex[:8]
        patient = {
            "name": "Smoke Test Patient",
            "birthDate": "1985-03-15",
            "email": f"smoke.{tag}@example.com",
            "address": "Rua das Flores, 123, Centro",
        }

        self.test_endpoint("GET", "/api", description="API信息")
        self.test_endpoint("GET", "/api/health", description="健康检查")
        self.test_endpoint("GET", "/api/patients/health", description="患者服务健康检查")

        created = self._data(self.test_endpoint("POST", "/api/patients", patient, 201, "创建患者"))
        self.test_endpoint("POST", "/api/patients", patient, 409, "重复邮箱")
        self.test_endpoint("POST", "/api/patients", {**patient, "birthDate": "2999-01-01"}, 400, "未来出生日期")

        self.test_endpoint("GET", "/api/patients?page=1&limit=5", description="患者列表")
        self.test_endpoint("GET", f"/api/patients/search?q={tag}", description="搜索患者")
        self.test_endpoint("GET", "/api/patients/age-range?minAge=18&maxAge=64", description="年龄范围")
        self.test_endpoint("GET", "/api/patients/age-range", expected_status=400, description="缺少年龄参数")
        self.test_endpoint("GET", "/api/patients/stats", description="统计数据")
        self.test_endpoint("GET", "/api/patients/export?format=csv", description="导出CSV")
        self.test_endpoint("GET", "/api/patients/export?format=xml", expected_status=400, description="不支持的导出格式")
        self.test_endpoint("GET", "/api/unknown-route", expected_status=404, description="未知路由")

        bulk = {"patients": [
            {**patient, "email": f"bulk1.{tag}@example.com"},
            {**patient, "email": f"bulk2.{tag}@example.com"},
            {**patient, "email": f"bulk1.{tag}@example.com"},
        ]}
        report = self._data(self.test_endpoint("POST", "/api/patients/bulk", bulk, 200, "批量创建(部分成功)"))

        if created:
            pid = created["id"]
            self.test_endpoint("GET", f"/api/patients/{pid}", description="获取患者")
            self.test_endpoint("PATCH", f"/api/patients/{pid}", {"name": "Smoke Test Updated"}, 200, "更新患者")
            self.test_endpoint("DELETE", f"/api/patients/{pid}", description="删除患者")
            self.test_endpoint("GET", f"/api/patients/{pid}", expected_status=404, description="已删除患者")

        # 清理批量创建的数据
        for p in (report or {}).get("results", []):
            self.test_endpoint("DELETE", f"/api/patients/{p['id']}", description="清理批量数据")

        self.generate_report()
        return not self.error_results

    def generate_report(self):
        total_tests = len(self.test_results)
        successful_tests = sum(1 for r in self.test_results if r.success)
        success_rate = (successful_tests / total_tests) * 100 if total_tests > 0 else 0

        print("\n🎯 测试完成摘要:")
        print(f"  总测试数: {total_tests}")
        print(f"  成功测试: {successful_tests}")
        print(f"  失败测试: {len(self.error_results)}")
        print(f"  成功率: {success_rate:.1f}%")

        if self.error_results:
            print(f"\n❌ 错误详情 ({len(self.error_results)} 个错误):")
            print("=" * 80)
            for i, error in enumerate(self.error_results, 1):
                print(f"{i}. {error.method} {error.endpoint}")
                print(f"   状态码: {error.status_code}")
                print(f"   错误: {error.error_message}")
                print(f"   描述: {error.description}")
                print("-" * 80)


def main():
    tester = PatientAPITester()
    if tester.run():
        print("\n✅ 所有API测试完成，系统功能正常")
        sys.exit(0)
    print(f"\n⚠️  API测试发现 {len(tester.error_results)} 个问题，请查看错误详情")
    sys.exit(1)


if __name__ == "__main__":
    main()
