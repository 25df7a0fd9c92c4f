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

"""
Authenticated calls against the vCloud API and waiting on the tasks they
start.
"""

import logging
import time
from http import client as httplib

from libvcloud.addressing import api_base, to_url
from libvcloud.common.errors import BUSY_ENTITY
from libvcloud.common.errors import exception_from_element
from libvcloud.common.errors import find_error_element
from libvcloud.common.errors import parse_error
from libvcloud.common.types import BusyEntityError
from libvcloud.common.types import CancelledError
from libvcloud.common.types import MediaType
from libvcloud.common.types import TaskFailedError
from libvcloud.common.types import TaskStatus
from libvcloud.common.types import TaskTimeoutError
from libvcloud.common.types import VCloudError
from libvcloud.session import AUTH_TOKEN_HEADER, accept_header
from libvcloud.utils import xml as vxml

__all__ = [
    'VCloudMethod',
    'MediaType',
    'ACTIONS',
    'INSTANTIATE_VAPP',
    'CAPTURE_VAPP',
    'CREATE_DISK',
    'COMPOSE_VAPP',
]

_logger = logging.getLogger(__name__)

INSTANTIATE_VAPP = 'instantiateVApp'
CAPTURE_VAPP = 'captureVApp'
CREATE_DISK = 'createDisk'
COMPOSE_VAPP = 'composeVApp'

# action -> (resource type, path suffix, media type of the request body)
ACTIONS = {
    INSTANTIATE_VAPP: ('vdc', '/action/instantiateVAppTemplate',
                       MediaType.INSTANTIATE_VAPP_TEMPLATE_PARAMS),
    CAPTURE_VAPP: ('vdc', '/action/captureVApp',
                   MediaType.CAPTURE_VAPP_PARAMS),
    CREATE_DISK: ('vdc', '/disk', MediaType.CREATE_DISK_PARAMS),
    COMPOSE_VAPP: ('vdc', '/action/composeVApp',
                   MediaType.COMPOSE_VAPP_PARAMS),
}

DEFAULT_TASK_TIMEOUT = 600
DEFAULT_TASK_INTERVAL = 15

VCLOUD_NAMESPACE = 'http://www.vmware.com/vcloud/v1.5'
XSI_NAMESPACE = 'http://www.w3.org/2001/XMLSchema-instance'


def _http_code(major):
    # vCloud reports the HTTP status as the major error code
    if major and major.isdigit():
        return int(major)
    return None


class VCloudMethod(object):
    """
    Executes calls on behalf of a :class:`libvcloud.driver.VCloudDriver`.

    Every call returns the response body as text, ``""`` for an empty
    (204) response and ``None`` when the resource does not exist.
    """

    _clock = staticmethod(time.monotonic)

    def __init__(self, driver):
        self.driver = driver

    # Session

    def authenticate(self, force=False):
        return self.driver.session_manager.authenticate(force=force)

    def get_region(self):
        return self.authenticate().region

    def list_data_centers(self):
        return tuple(self.authenticate().data_centers)

    def get_org_name(self, href):
        """
        Return the name of the organisation behind ``href``, falling back to
        its id when the organisation cannot be read.
        """
        org_id = self.driver.to_id(href)
        body = self.get('org', org_id)

        if not body:
            return org_id

        org = next(vxml.iter_named(self.parse_xml(body), 'Org'), None)
        if org is None:
            return org_id
        return vxml.get_attr(org, 'name') or org_id

    # Addressing

    def _base(self, session):
        return api_base(session.endpoint, session.version.version)

    def to_url(self, resource_type, id=None):
        return to_url(self._base(self.authenticate()), resource_type, id,
                      compat=self.driver.is_compat())

    def _action_url(self, session, action, id):
        compat = self.driver.is_compat()
        base = self._base(session)

        if action in ACTIONS:
            resource_type, suffix, _ = ACTIONS[action]
            return to_url(base, resource_type, id, compat=compat) + suffix
        return to_url(base, action, id, compat=compat)

    # Verbs

    def get(self, resource, id=None):
        """
        :param resource: Resource type, e.g. ``vApp``.
        :param id: Resource id in the configured id format, or an absolute
                   href. ``None`` addresses the collection.
        :rtype: ``str`` or ``None``
        """
        return self._execute('GET', lambda s: self._action_url(s, resource,
                                                               id))

    def post(self, action, id=None, media_type=None, body=None):
        """
        POST ``body`` to a named action (see :data:`ACTIONS`) or to a
        resource.

        The media type of a named action is used unless ``media_type`` is
        given.
        """
        if media_type is None and action in ACTIONS:
            media_type = ACTIONS[action][2]
        return self._execute('POST', lambda s: self._action_url(s, action,
                                                                id),
                             media_type=media_type, body=body)

    def put(self, action, id, media_type, body):
        return self._execute('PUT', lambda s: self._action_url(s, action,
                                                               id),
                             media_type=media_type, body=body)

    def delete(self, resource, id):
        return self._execute('DELETE', lambda s: self._action_url(s, resource,
                                                                  id))

    def _check_cancelled(self, cancel_event=None):
        event = cancel_event or self.driver.cancel_event
        if event is not None and event.is_set():
            raise CancelledError('Operation was cancelled',
                                 driver=self.driver)

    def _execute(self, method, url_for, media_type=None, body=None,
                 cancel_event=None):
        """
        :param url_for: Callable building the URL from a session. The URL
                        is rebuilt after re-authentication.
        """
        session = self.authenticate()

        for attempt in (1, 2):
            self._check_cancelled(cancel_event)

            url = url_for(session)
            headers = {'Accept': accept_header(session.version.version),
                       AUTH_TOKEN_HEADER: session.token}
            if media_type:
                headers['Content-Type'] = media_type

            response = self.driver.connection.request(url, method=method,
                                                      data=body,
                                                      headers=headers)
            status = response.status

            if status == httplib.UNAUTHORIZED and attempt == 1:
                _logger.debug('Session for %s was rejected, logging in again',
                              session.region.name)
                session = self.authenticate(force=True)
                continue
            break

        if status == httplib.NOT_FOUND:
            return None
        if status == httplib.NO_CONTENT:
            return ''
        if response.success():
            return response.body

        error = parse_error(status, response.body, reason=response.reason,
                            driver=self.driver)
        _logger.error('Expected OK for %s request, got %s: [%s] %s', method,
                      status, error.minor_code or 'Error', error.value)
        raise error

    # Documents

    def parse_xml(self, xml):
        return vxml.parse_xml(xml, driver=self.driver)

    def check_error(self, xml):
        """
        Raise the error carried by ``xml``, either an ``Error`` document or
        a failed ``Task``. Other documents pass silently.
        """
        if not xml:
            return

        document = self.parse_xml(xml)

        if vxml.is_named(document, 'Error'):
            raise exception_from_element(
                _http_code(vxml.get_attr(document, 'majorErrorCode')),
                document, driver=self.driver)

        for task in vxml.iter_named(document, 'Task'):
            status = TaskStatus.from_provider(vxml.get_attr(task, 'status'))
            if status != TaskStatus.ERROR:
                continue
            error = find_error_element(task)
            if error is not None:
                raise exception_from_element(
                    _http_code(vxml.get_attr(error, 'majorErrorCode')),
                    error, driver=self.driver)

    def post_metadata(self, resource, id, metadata):
        """
        Attach ``metadata`` to a resource. Entries whose value is ``None``
        are skipped.

        Failures are logged and swallowed.

        :return: The response body (usually a ``Task``) or ``None``.
        """
        entries = [(key, value) for key, value in metadata.items()
                   if value is not None]
        if not entries:
            return None

        xml = ['<Metadata xmlns="%s" xmlns:xsi="%s">'
               % (VCLOUD_NAMESPACE, XSI_NAMESPACE)]
        for key, value in entries:
            xml.append('<MetadataEntry>')
            xml.append('<Domain>GENERAL</Domain>')
            xml.append('<Key>%s</Key>' % (vxml.escape_xml(str(key))))
            xml.append('<TypedValue xsi:type="MetadataStringValue">')
            xml.append('<Value>%s</Value>' % (vxml.escape_xml(str(value))))
            xml.append('</TypedValue>')
            xml.append('</MetadataEntry>')
        xml.append('</Metadata>')

        try:
            return self._execute(
                'POST',
                lambda s: self._action_url(s, resource, id) + '/metadata',
                media_type=MediaType.METADATA, body=''.join(xml))
        except VCloudError as e:
            _logger.warning('Error updating meta-data on %s %s: %s',
                            resource, id, e)
            return None

    # Tasks

    def wait_for(self, task_or_body, timeout=DEFAULT_TASK_TIMEOUT,
                 interval=DEFAULT_TASK_INTERVAL, cancel_event=None):
        """
        Block until the task(s) referenced by ``task_or_body`` finish.

        :param task_or_body: A task href or a response body. Every ``Task``
                             in a body is waited on in document order. A
                             body without tasks returns immediately.
        :param timeout: Overall deadline in seconds.
        :param interval: Seconds between polls.
        :param cancel_event: ``threading.Event`` which aborts the wait with
                             :class:`CancelledError` once set. Defaults to
                             the driver's event.

        :raises TaskFailedError: A task ended in an error state.
        :raises BusyEntityError: A task failed because its entity was busy.
        :raises TaskTimeoutError: The deadline passed.
        """
        if not task_or_body:
            return

        if task_or_body.startswith('http://') or \
                task_or_body.startswith('https://'):
            hrefs = [task_or_body]
        else:
            document = self.parse_xml(task_or_body)
            hrefs = [vxml.get_attr(task, 'href')
                     for task in vxml.iter_named(document, 'Task')]
            hrefs = [href for href in hrefs if href]

        event = cancel_event or self.driver.cancel_event
        deadline = self._clock() + timeout

        for href in hrefs:
            self._wait_for_task(href, deadline, timeout, interval, event)

    def _wait_for_task(self, href, deadline, timeout, interval, event):
        while True:
            body = self._execute('GET', lambda s: href, cancel_event=event)
            if body is None:
                raise TaskFailedError('Task %s no longer exists' % (href),
                                      task_href=href, driver=self.driver)

            document = self.parse_xml(body)
            task = next(vxml.iter_named(document, 'Task'), document)
            status = TaskStatus.from_provider(vxml.get_attr(task, 'status'))

            if status == TaskStatus.SUCCESS:
                _logger.debug('Task %s succeeded', href)
                return
            if status == TaskStatus.ERROR:
                raise self._task_error(task, href)

            remaining = deadline - self._clock()
            if remaining <= 0:
                raise TaskTimeoutError(
                    'Task %s did not finish within %s seconds'
                    % (href, timeout), task_href=href, timeout=timeout,
                    driver=self.driver)

            _logger.debug('Task %s is %s, checking again in %s seconds',
                          href, vxml.get_attr(task, 'status'), interval)
            if event.wait(min(interval, remaining)):
                raise CancelledError('Cancelled while waiting for task %s'
                                     % (href), driver=self.driver)

    def _task_error(self, task, href):
        error = find_error_element(task)
        major = minor = message = None

        if error is not None:
            major = vxml.get_attr(error, 'majorErrorCode')
            minor = vxml.get_attr(error, 'minorErrorCode')
            message = vxml.get_attr(error, 'message')

        message = message or 'Task %s failed' % (href)

        if minor and BUSY_ENTITY in minor:
            return BusyEntityError(message, http_code=_http_code(major),
                                   major_code=major, minor_code=minor,
                                   driver=self.driver)
        return TaskFailedError(message, major_code=major, minor_code=minor,
                               task_href=href, driver=self.driver)


