# =============================================================================
# core/record_store.py - Directory record store adapter
# =============================================================================

from abc import ABC, abstractmethod
from typing import Dict, List, Optional
import logging

from utils.commands import CommandRunner

LOCAL_NODE = "."


def user_path(username: str) -> str:
    return f"/Users/{username}"


def group_path(group: str) -> str:
    return f"/Groups/{group}"


def parse_dscl_read(output: str, attribute: str) -> Optional[List[str]]:
    """
    Parse the text printed by ``dscl -read`` for a single attribute.

    dscl prints short values on the header line separated by spaces
    (``UniqueID: 1205``) and switches to one value per indented line when any
    value contains a space (``AuthenticationAuthority:`` followed by
    `` ;LocalCachedUser;/Active Directory/...``).

    Args:
        output: Raw stdout of the read command
        attribute: Attribute name that was requested

    Returns:
        List of values, or None when the attribute is not present
    """
    header = f"{attribute}:"
    values: List[str] = []
    in_attribute = False

    for line in output.splitlines():
        if not in_attribute:
            if line.startswith(header):
                in_attribute = True
                inline = line[len(header):].strip()
                if inline:
                    values.extend(inline.split(" "))
            continue

        # Continuation lines are indented by a single space
        if line.startswith(" "):
            value = line[1:]
            if value:
                values.append(value)
        else:
            break

    if not in_attribute:
        return None
    return values


def parse_dscl_list(output: str) -> Dict[str, str]:
    """Parse ``dscl -list <dir> <attr>`` output into name -> value"""
    listing = {}
    for line in output.splitlines():
        parts = line.split()
        if len(parts) >= 2:
            listing[parts[0]] = parts[-1]
        elif len(parts) == 1:
            listing[parts[0]] = ""
    return listing


class RecordStore(ABC):
    """Read/write access to named attributes of directory records"""

    @abstractmethod
    def read_attribute(self, record_path: str, attribute: str) -> Optional[List[str]]:
        """Return the attribute's values, or None when absent"""
        pass

    @abstractmethod
    def create_attribute(self, record_path: str, attribute: str, value: str) -> bool:
        """Create (or overwrite) an attribute with a single value"""
        pass

    @abstractmethod
    def delete_attribute(self, record_path: str, attribute: str) -> bool:
        """Delete an attribute; deleting an absent attribute is a no-op"""
        pass

    @abstractmethod
    def change_attribute(self, record_path: str, attribute: str, old: str, new: str) -> bool:
        """Replace one value of an attribute"""
        pass

    @abstractmethod
    def list_attribute(self, directory: str, attribute: str) -> Dict[str, str]:
        """Map every record name under a directory to one attribute value"""
        pass

    def read_first(self, record_path: str, attribute: str) -> Optional[str]:
        """Return the first value of an attribute, or None"""
        values = self.read_attribute(record_path, attribute)
        if not values:
            return None
        return values[0]


class DsclRecordStore(RecordStore):
    """Record store backed by the dscl command against one node"""

    def __init__(self, runner: CommandRunner, dscl_path: str, node: str = LOCAL_NODE):
        self.runner = runner
        self.dscl_path = dscl_path
        self.node = node
        self.logger = logging.getLogger(self.__class__.__name__)

    def read_attribute(self, record_path: str, attribute: str) -> Optional[List[str]]:
        result = self.runner.run([self.dscl_path, self.node, "-read", record_path, attribute])
        if not result.ok:
            self.logger.debug(f"{attribute} not readable on {record_path}: {result.stderr.strip()}")
            return None
        return parse_dscl_read(result.stdout, attribute)

    def create_attribute(self, record_path: str, attribute: str, value: str) -> bool:
        result = self.runner.run([self.dscl_path, self.node, "-create", record_path, attribute, value])
        if not result.ok:
            self.logger.error(f"Failed to create {attribute} on {record_path}: {result.stderr.strip()}")
        return result.ok

    def delete_attribute(self, record_path: str, attribute: str) -> bool:
        result = self.runner.run([self.dscl_path, self.node, "-delete", record_path, attribute])
        if not result.ok:
            # dscl reports an error for keys that are already gone
            self.logger.debug(f"Delete of {attribute} on {record_path} was a no-op: {result.stderr.strip()}")
        return True

    def change_attribute(self, record_path: str, attribute: str, old: str, new: str) -> bool:
        result = self.runner.run([self.dscl_path, self.node, "-change", record_path, attribute, old, new])
        if not result.ok:
            self.logger.error(f"Failed to change {attribute} on {record_path} "
                              f"from {old} to {new}: {result.stderr.strip()}")
        return result.ok

    def list_attribute(self, directory: str, attribute: str) -> Dict[str, str]:
        result = self.runner.run([self.dscl_path, self.node, "-list", directory, attribute])
        if not result.ok:
            self.logger.error(f"Failed to list {directory} {attribute}: {result.stderr.strip()}")
            return {}
        return parse_dscl_list(result.stdout)
