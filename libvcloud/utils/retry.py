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

import time
from functools import wraps
import logging

from libvcloud.common.types import BusyEntityError

__all__ = [
    "RetryOnBusyEntity",
]

_logger = logging.getLogger(__name__)

# Constants used by the ``RetryOnBusyEntity`` class
# All the time values (delay, backoff) are in seconds
DEFAULT_ATTEMPTS = 3
DEFAULT_DELAY = 15
DEFAULT_BACKOFF = 1


class RetryOnBusyEntity(object):
    def __init__(self, attempts=DEFAULT_ATTEMPTS, retry_delay=DEFAULT_DELAY,
                 backoff=DEFAULT_BACKOFF, sleep=time.sleep):
        """
        Wrapper which re-runs a whole operation when the cloud reports that
        the entity it touches is busy with another task.

        Any other error is raised straight away. The last
        :class:`BusyEntityError` is raised once ``attempts`` runs failed.

        :param attempts: total number of runs, including the first one.
        :param retry_delay: delay before the second run.
        :param backoff: multiplier applied to the delay after each run.

        :Example:

        undeploy = RetryOnBusyEntity(attempts=4)(self._undeploy)
        undeploy(vapp_id)
        """
        if attempts is None or attempts < 1:
            attempts = 1
        if retry_delay is None:
            retry_delay = DEFAULT_DELAY
        if backoff is None:
            backoff = DEFAULT_BACKOFF

        self.attempts = attempts
        self.retry_delay = retry_delay
        self.backoff = backoff
        self._sleep = sleep

    def __call__(self, func):
        @wraps(func)
        def retry_loop(*args, **kwargs):
            current_delay = self.retry_delay

            for attempt in range(1, self.attempts + 1):
                try:
                    return func(*args, **kwargs)
                except BusyEntityError as exc:
                    if attempt == self.attempts:
                        raise
                    _logger.debug("Entity busy (%s), retrying in %s "
                                  "seconds (attempt %d of %d)",
                                  exc, current_delay, attempt,
                                  self.attempts)
                    self._sleep(current_delay)
                    current_delay *= self.backoff

        return retry_loop
