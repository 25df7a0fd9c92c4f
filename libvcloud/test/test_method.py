# Licensed to the Apache Software Foundation (ASF) under one or more
# contributor license agreements.  See the NOTICE file distributed with
# this work for additional information regarding copyright ownership.
# The ASF licenses this file to You under the Apache License, Version 2.0
# (the "License"); you may not use this file except in compliance with
# the License.  You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import sys
import threading
import time
import unittest
from http import client as httplib

import requests

from libvcloud.common.types import AuthenticationError
from libvcloud.common.types import BusyEntityError
from libvcloud.common.types import CancelledError
from libvcloud.common.types import ConnectivityError
from libvcloud.common.types import MalformedResponseError
from libvcloud.common.types import ProviderError
from libvcloud.common.types import TaskFailedError
from libvcloud.common.types import TaskTimeoutError
from libvcloud.context import ProviderContext
from libvcloud.dc import Region
from libvcloud.driver import VCloudDriver
from libvcloud.http import VCloudHTTPConnection
from libvcloud.method import INSTANTIATE_VAPP, MediaType
from libvcloud.session import Session
from libvcloud.test import MockHttp, VCloudTestCase, XML_HEADERS
from libvcloud.test import make_raw_response
from libvcloud.test.file_fixtures import FileFixtures
from libvcloud.test.secrets import VCLOUD_PARAMS
from libvcloud.utils.cache import SESSION_TTL, TTLCache
from libvcloud.versions import NegotiatedVersion

ORG_ID = '96726c78-4ae3-402f-b08b-7a78c6903d2a'
VDC_ID = 'cf43ab3e-2d04-46d4-8dcd-03f6a8d1d8b4'
VDC2_ID = '3f3c2a7b-9e1d-4f36-9c56-8b3ad6e3b0f5'

ENDPOINT = VCLOUD_PARAMS[0]
TASK_HREF = ENDPOINT + '/api/task/task-1'


def make_driver(compat=False, version=None, cache=None, **kwargs):
    properties = kwargs.pop('custom_properties', {})
    properties['compat'] = 'true' if compat else 'false'
    if version is not None:
        properties['versionPreference'] = version
    context = ProviderContext(*VCLOUD_PARAMS, custom_properties=properties,
                              **kwargs)
    return VCloudDriver(context, cache=cache)


class CancelOnWait(object):
    """
    Event which gets cancelled the moment somebody starts waiting on it.
    """

    def __init__(self):
        self._event = threading.Event()

    def is_set(self):
        return self._event.is_set()

    def wait(self, timeout=None):
        self._event.set()
        return True


class VCloudMockHttp(MockHttp):

    fixtures = FileFixtures('vcloud_1_5')
    fixtures_0_8 = FileFixtures('vcloud_0_8')

    tokens_issued = 0
    unauthorized = 0
    login_response = None
    task_statuses = []
    requests = []

    @classmethod
    def reset(cls, test=None):
        cls.type = None
        cls.test = test
        cls.tokens_issued = 0
        cls.unauthorized = 0
        cls.login_response = None
        cls.task_statuses = []
        cls.requests = []

    def _get_request(self, method, url, body=None, headers=None):
        VCloudMockHttp.requests.append((method, url, dict(headers or {}),
                                        body))
        return super(VCloudMockHttp, self)._get_request(method, url, body,
                                                        headers)

    def _ok(self, body, status=httplib.OK, headers=None):
        return (status, body, dict(headers or XML_HEADERS),
                httplib.responses[status])

    def _login(self, body):
        if VCloudMockHttp.login_response is not None:
            return VCloudMockHttp.login_response

        VCloudMockHttp.tokens_issued += 1
        headers = dict(XML_HEADERS)
        headers['x-vcloud-authorization'] = \
            'token-%d' % (VCloudMockHttp.tokens_issued)
        return self._ok(body, headers=headers)

    def _api_versions(self, method, url, body, headers):
        return self._ok(self.fixtures.load('api_versions.xml'))

    def _api_sessions(self, method, url, body, headers):
        return self._login(self.fixtures.load('api_sessions.xml'))

    def _api_org_96726c78_4ae3_402f_b08b_7a78c6903d2a(self, method, url,
                                                       body, headers):
        return self._ok(self.fixtures.load(
            'api_org_96726c78_4ae3_402f_b08b_7a78c6903d2a.xml'))

    def _api_org_missing(self, method, url, body, headers):
        return self._ok('', status=httplib.NOT_FOUND)

    def _api_vApp_vapp_1(self, method, url, body, headers):
        if method == 'DELETE':
            return self._ok('', status=httplib.NO_CONTENT)
        if method == 'PUT':
            return self._ok(self.fixtures.load('api_task_running.xml'),
                            status=httplib.ACCEPTED)
        return self._ok(self.fixtures.load('api_vApp_vapp_1.xml'))

    def _api_vApp_vapp_1_metadata(self, method, url, body, headers):
        return self._ok(self.fixtures.load('api_task_running.xml'),
                        status=httplib.ACCEPTED)

    def _api_vApp_vapp_1_disk_action_attach(self, method, url, body,
                                            headers):
        return self._ok(self.fixtures.load('api_task_running.xml'),
                        status=httplib.ACCEPTED)

    def _api_vApp_vapp_missing(self, method, url, body, headers):
        return self._ok('', status=httplib.NOT_FOUND)

    def _api_vApp_vapp_secured(self, method, url, body, headers):
        if VCloudMockHttp.unauthorized > 0:
            VCloudMockHttp.unauthorized -= 1
            return self._ok(self.fixtures.load('error_unauthorized.xml'),
                            status=httplib.UNAUTHORIZED)
        return self._ok(self.fixtures.load('api_vApp_vapp_1.xml'))

    def _api_vApp_vapp_denied(self, method, url, body, headers):
        return self._ok(self.fixtures.load('error_unauthorized.xml'),
                        status=httplib.UNAUTHORIZED)

    def _api_vApp_vapp_broken(self, method, url, body, headers):
        return self._ok(self.fixtures.load('error_internal.xml'),
                        status=httplib.INTERNAL_SERVER_ERROR)

    def _api_vApp_vapp_broken_metadata(self, method, url, body, headers):
        return self._ok(self.fixtures.load('error_internal.xml'),
                        status=httplib.INTERNAL_SERVER_ERROR)

    def _api_vApp_vapp_busy(self, method, url, body, headers):
        return self._ok(self.fixtures.load('error_busy_entity.xml'),
                        status=httplib.BAD_REQUEST)

    def _api_vApp_vapp_unreachable(self, method, url, body, headers):
        raise requests.exceptions.ConnectionError('Connection refused')

    def _api_vdc_cf43ab3e_2d04_46d4_8dcd_03f6a8d1d8b4_action_instantiateVAppTemplate(
            self, method, url, body, headers):
        return self._ok(
            self.fixtures.load('api_vdc_instantiateVAppTemplate.xml'),
            status=httplib.CREATED)

    def _api_task_task_1(self, method, url, body, headers):
        status = 'success'
        if VCloudMockHttp.task_statuses:
            status = VCloudMockHttp.task_statuses.pop(0)
        return self._ok(self.fixtures.load('api_task_%s.xml' % (status)))

    def _api_task_task_error(self, method, url, body, headers):
        return self._ok(self.fixtures.load('api_task_error.xml'))

    def _api_task_task_busy(self, method, url, body, headers):
        return self._ok(self.fixtures.load('api_task_busy.xml'))

    def _api_task_task_gone(self, method, url, body, headers):
        return self._ok('', status=httplib.NOT_FOUND)

    def _api_v0_8_login(self, method, url, body, headers):
        return self._login(self.fixtures_0_8.load('api_v0_8_login.xml'))

    def _api_v0_8_org_acme(self, method, url, body, headers):
        return self._ok(self.fixtures_0_8.load('api_v0_8_org_acme.xml'))

    def _api_v0_8_vApp_vapp_1(self, method, url, body, headers):
        return self._ok(self.fixtures.load('api_vApp_vapp_1.xml'))


class VCloudMethodTests(VCloudTestCase):

    def setUp(self):
        super(VCloudMethodTests, self).setUp()
        VCloudDriver.connectionCls.conn_class = VCloudMockHttp
        VCloudMockHttp.reset(test=self)
        self.driver = make_driver()
        self.method = self.driver.method()

    def last_request(self):
        return VCloudMockHttp.requests[-1]

    def test_get(self):
        body = self.method.get('vApp', 'vapp-1')
        self.assertIn('name="web"', body)

        method, url, headers, _ = self.last_request()
        self.assertEqual(method, 'GET')
        self.assertEqual(url, ENDPOINT + '/api/vApp/vapp-1')
        self.assertEqual(headers['Accept'], 'application/*+xml;version=5.1')
        self.assertEqual(headers['x-vcloud-authorization'], 'token-1')
        self.assertNotIn('Content-Type', headers)

    def test_get_compat_id(self):
        driver = make_driver(compat=True)
        body = driver.method().get('vApp', '/vApp/vapp-1')
        self.assertIn('name="web"', body)
        self.assertEqual(self.last_request()[1], ENDPOINT + '/api/vApp/vapp-1')

    def test_get_absolute_href(self):
        self.method.get('vApp', ENDPOINT + '/api/vApp/vapp-1')
        self.assertEqual(self.last_request()[1], ENDPOINT + '/api/vApp/vapp-1')

    def test_get_pre_1_5(self):
        driver = make_driver(version='0.8')
        body = driver.method().get('vApp', 'vapp-1')
        self.assertIn('name="web"', body)

        _, url, headers, _ = self.last_request()
        self.assertEqual(url, ENDPOINT + '/api/v0.8/vApp/vapp-1')
        self.assertEqual(headers['Accept'], 'application/*+xml;version=0.8')

    def test_get_not_found_returns_none(self):
        self.assertIsNone(self.method.get('vApp', 'vapp-missing'))

    def test_delete_no_content_returns_empty_string(self):
        self.assertEqual(self.method.delete('vApp', 'vapp-1'), '')
        self.assertEqual(self.last_request()[0], 'DELETE')

    def test_put(self):
        body = self.method.put('vApp', 'vapp-1', MediaType.VAPP, '<VApp/>')
        self.assertIn('status="running"', body)

        method, _, headers, data = self.last_request()
        self.assertEqual(method, 'PUT')
        self.assertEqual(headers['Content-Type'], MediaType.VAPP)
        self.assertEqual(data, '<VApp/>')

    def test_post_named_action(self):
        body = self.method.post(INSTANTIATE_VAPP, VDC_ID,
                                body='<InstantiateVAppTemplateParams/>')
        self.assertIn('<Task', body)

        method, url, headers, _ = self.last_request()
        self.assertEqual(method, 'POST')
        self.assertEqual(url, ENDPOINT + '/api/vdc/' + VDC_ID +
                         '/action/instantiateVAppTemplate')
        self.assertEqual(headers['Content-Type'],
                         MediaType.INSTANTIATE_VAPP_TEMPLATE_PARAMS)

    def test_post_to_absolute_url(self):
        url = ENDPOINT + '/api/vApp/vapp-1/disk/action/attach'
        body = self.method.post('attachVolume', url,
                                MediaType.ATTACH_DISK_PARAMS, '<Params/>')
        self.assertIn('<Task', body)
        self.assertEqual(self.last_request()[1], url)
        self.assertEqual(self.last_request()[2]['Content-Type'],
                         MediaType.ATTACH_DISK_PARAMS)

    def test_unauthorized_reauthenticates_once(self):
        VCloudMockHttp.unauthorized = 1

        body = self.method.get('vApp', 'vapp-secured')
        self.assertIn('name="web"', body)
        self.assertExecutedMethodTimes('_api_sessions', 2)
        self.assertExecutedMethodTimes('_api_vApp_vapp_secured', 2)
        self.assertEqual(self.last_request()[2]['x-vcloud-authorization'],
                         'token-2')

    def test_second_unauthorized_raises(self):
        with self.assertRaises(AuthenticationError) as ctx:
            self.method.get('vApp', 'vapp-denied')

        self.assertEqual(ctx.exception.http_code, 401)
        self.assertEqual(ctx.exception.minor_code, 'UNAUTHORIZED')
        self.assertExecutedMethodTimes('_api_sessions', 2)
        self.assertExecutedMethodTimes('_api_vApp_vapp_denied', 2)

    def test_provider_error_is_classified_and_logged(self):
        with self.assertLogs('libvcloud.method', level='ERROR') as logs:
            with self.assertRaises(ProviderError) as ctx:
                self.method.get('vApp', 'vapp-broken')

        error = ctx.exception
        self.assertEqual(error.http_code, 500)
        self.assertEqual(error.major_code, '500')
        self.assertEqual(error.minor_code, 'INTERNAL_SERVER_ERROR')
        self.assertEqual(error.value, 'Something went wrong on the cloud side')
        self.assertIn('INTERNAL_SERVER_ERROR', logs.output[0])

    def test_busy_entity_error(self):
        self.assertRaises(BusyEntityError, self.method.get, 'vApp',
                          'vapp-busy')

    def test_transport_failure_raises_connectivity_error(self):
        with self.assertRaises(ConnectivityError) as ctx:
            self.method.get('vApp', 'vapp-unreachable')
        self.assertIsInstance(ctx.exception.__cause__,
                              requests.exceptions.ConnectionError)

    def test_cancelled_before_request(self):
        self.method.authenticate()
        self.driver.cancel_event.set()
        executed = len(self._executed_mock_methods)

        self.assertRaises(CancelledError, self.method.get, 'vApp', 'vapp-1')
        self.assertExecutedMethodCount(executed)

    def test_parse_xml_malformed(self):
        self.assertRaises(MalformedResponseError, self.method.parse_xml,
                          '<VApp><broken></VApp>')

    def test_check_error(self):
        fixtures = VCloudMockHttp.fixtures

        self.assertRaises(ProviderError, self.method.check_error,
                          fixtures.load('error_internal.xml'))
        self.assertRaises(BusyEntityError, self.method.check_error,
                          fixtures.load('error_busy_entity.xml'))
        self.assertRaises(AuthenticationError, self.method.check_error,
                          fixtures.load('error_unauthorized.xml'))
        self.assertRaises(ProviderError, self.method.check_error,
                          fixtures.load('api_task_error.xml'))

        self.method.check_error(fixtures.load('api_task_running.xml'))
        self.method.check_error(fixtures.load('api_vApp_vapp_1.xml'))
        self.method.check_error('')

    def test_post_metadata(self):
        body = self.method.post_metadata('vApp', 'vapp-1',
                                         {'owner': 'ops & <dev>',
                                          'empty': None})
        self.assertIn('<Task', body)

        method, url, headers, data = self.last_request()
        self.assertEqual(method, 'POST')
        self.assertEqual(url, ENDPOINT + '/api/vApp/vapp-1/metadata')
        self.assertEqual(headers['Content-Type'], MediaType.METADATA)
        self.assertIn('<Domain>GENERAL</Domain>', data)
        self.assertIn('<Key>owner</Key>', data)
        self.assertIn('<Value>ops &amp; &lt;dev&gt;</Value>', data)
        self.assertIn('xsi:type="MetadataStringValue"', data)
        self.assertNotIn('empty', data)

    def test_post_metadata_failure_is_logged(self):
        with self.assertLogs('libvcloud.method', level='WARNING') as logs:
            result = self.method.post_metadata('vApp', 'vapp-broken',
                                               {'owner': 'ops'})
        self.assertIsNone(result)
        self.assertTrue(any('meta-data' in line for line in logs.output))

    def test_post_metadata_nothing_to_write(self):
        self.assertIsNone(self.method.post_metadata('vApp', 'vapp-1',
                                                    {'a': None}))
        self.assertExecutedMethodCount(0)

    def test_region_and_data_centers(self):
        region = self.method.get_region()
        self.assertEqual(region.id, ORG_ID)
        self.assertEqual(region.name, 'acme')

        dcs = self.method.list_data_centers()
        self.assertEqual([dc.id for dc in dcs], [VDC_ID, VDC2_ID])

    def test_get_org_name(self):
        href = ENDPOINT + '/api/org/' + ORG_ID
        self.assertEqual(self.method.get_org_name(href), 'acme')
        self.assertEqual(self.method.get_org_name(ENDPOINT + '/api/org/missing'),
                         'missing')

    def test_to_url(self):
        self.assertEqual(self.method.to_url('vdc', VDC_ID),
                         ENDPOINT + '/api/vdc/' + VDC_ID)
        self.assertEqual(self.method.to_url('vdc'), ENDPOINT + '/api/vdc')


class TaskPollerTests(VCloudTestCase):

    def setUp(self):
        super(TaskPollerTests, self).setUp()
        VCloudDriver.connectionCls.conn_class = VCloudMockHttp
        VCloudMockHttp.reset(test=self)
        self.driver = make_driver()
        self.method = self.driver.method()
        self.method.authenticate()

    def test_wait_for_href(self):
        VCloudMockHttp.task_statuses = ['running', 'running', 'success']
        self.method.wait_for(TASK_HREF, interval=0)
        self.assertExecutedMethodTimes('_api_task_task_1', 3)

    def test_wait_for_body(self):
        VCloudMockHttp.task_statuses = ['running', 'success']
        body = self.method.post(INSTANTIATE_VAPP, VDC_ID, body='<Params/>')

        self.method.wait_for(body, interval=0)
        self.assertExecutedMethodTimes('_api_task_task_1', 2)

    def test_wait_for_body_without_task(self):
        fixtures = VCloudMockHttp.fixtures
        executed = len(self._executed_mock_methods)

        self.method.wait_for(fixtures.load('api_vApp_vapp_1.xml'))
        self.method.wait_for('')
        self.method.wait_for(None)
        self.assertExecutedMethodCount(executed)

    def test_wait_for_failed_task(self):
        with self.assertRaises(TaskFailedError) as ctx:
            self.method.wait_for(ENDPOINT + '/api/task/task-error',
                                 interval=0)

        error = ctx.exception
        self.assertEqual(error.major_code, '500')
        self.assertEqual(error.minor_code, 'INTERNAL_SERVER_ERROR')
        self.assertEqual(error.task_href, ENDPOINT + '/api/task/task-error')
        self.assertIn('insufficient storage', error.value)

    def test_wait_for_busy_task(self):
        with self.assertRaises(BusyEntityError) as ctx:
            self.method.wait_for(ENDPOINT + '/api/task/task-busy', interval=0)
        self.assertEqual(ctx.exception.minor_code, 'BUSY_ENTITY')

    def test_wait_for_vanished_task(self):
        self.assertRaises(TaskFailedError, self.method.wait_for,
                          ENDPOINT + '/api/task/task-gone', interval=0)

    def test_wait_for_timeout(self):
        VCloudMockHttp.task_statuses = ['running'] * 5

        with self.assertRaises(TaskTimeoutError) as ctx:
            self.method.wait_for(TASK_HREF, timeout=0, interval=0)

        self.assertEqual(ctx.exception.task_href, TASK_HREF)
        self.assertExecutedMethodTimes('_api_task_task_1', 1)

    def test_wait_for_deadline_uses_clock(self):
        now = [1000.0]

        def clock():
            now[0] += 60
            return now[0]

        self.method._clock = clock
        VCloudMockHttp.task_statuses = ['running'] * 20

        self.assertRaises(TaskTimeoutError, self.method.wait_for, TASK_HREF,
                          timeout=600, interval=0)
        self.assertExecutedMethodTimes('_api_task_task_1', 10)

    def test_wait_for_cancelled_while_sleeping(self):
        VCloudMockHttp.task_statuses = ['running'] * 5

        self.assertRaises(CancelledError, self.method.wait_for, TASK_HREF,
                          interval=15, cancel_event=CancelOnWait())
        self.assertExecutedMethodTimes('_api_task_task_1', 1)

    def test_wait_for_cancelled_before_polling(self):
        event = threading.Event()
        event.set()

        self.assertRaises(CancelledError, self.method.wait_for, TASK_HREF,
                          cancel_event=event)
        self.assertExecutedMethodTimes('_api_task_task_1', 0)


class EchoHttp(VCloudHTTPConnection):
    """
    Transport whose server answers every request with the requested URL.
    """

    def __init__(self, *args, **kwargs):
        super(EchoHttp, self).__init__(*args, **kwargs)
        self.session.request = self._echo

    def _echo(self, method, url, **kwargs):
        # let another thread run between sending and answering
        time.sleep(0)
        return make_raw_response(httplib.OK, dict(XML_HEADERS), body=url,
                                 url=url)


class ConcurrentCallTests(unittest.TestCase):

    def setUp(self):
        VCloudDriver.connectionCls.conn_class = EchoHttp
        self.switch_interval = sys.getswitchinterval()
        sys.setswitchinterval(1e-6)

        cache = TTLCache(SESSION_TTL)
        self.driver = make_driver(cache=cache)
        version = NegotiatedVersion('5.1', ENDPOINT + '/api/sessions')
        cache.put(self.driver.session_manager.key,
                  Session('token-1', version, ENDPOINT, Region(ORG_ID, 'acme'),
                          ()))

    def tearDown(self):
        sys.setswitchinterval(self.switch_interval)

    def test_concurrent_gets_on_one_driver(self):
        crossed = []
        errors = []

        def worker(name):
            method = self.driver.method()
            try:
                for i in range(300):
                    vapp_id = '%s-%d' % (name, i)
                    body = method.get('vApp', vapp_id)
                    if body != ENDPOINT + '/api/vApp/' + vapp_id:
                        crossed.append((vapp_id, body))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(name,))
                   for name in ('a', 'b', 'c', 'd')]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(crossed, [])
        self.assertIsInstance(self.driver.connection.connection, EchoHttp)


if __name__ == '__main__':
    sys.exit(unittest.main())
