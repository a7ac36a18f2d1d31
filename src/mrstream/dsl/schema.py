import os
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import orjson
import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

GZIP_CODEC = "org.apache.hadoop.io.compress.GzipCodec"
SNAPPY_CODEC = "org.apache.hadoop.io.compress.SnappyCodec"


class RerunStrategy(str, Enum):
    """What to do when a step's destination already exists."""

    FAIL = "fail"  # abort the flow
    SKIP = "skip"  # treat the step as done
    RERUN = "rerun"  # delete the destination and run again


class PartitionStrategy(BaseModel):
    model_config = ConfigDict(frozen=True)
    key_segments: int = Field(ge=1)
    sort_segments: int = Field(ge=1)


class MROptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")
    eq: int = Field(default=1, ge=1)  # key segments that form one reduce group
    partition: Optional[PartitionStrategy] = None
    num_map: Optional[int] = None
    num_reduce: Optional[int] = None
    compress: Optional[str] = None  # output compression codec class
    jobconf: Dict[str, str] = Field(default_factory=dict)

    def jobconf_pairs(self) -> List[Tuple[str, str]]:
        pairs: List[Tuple[str, str]] = []
        if self.partition:
            pairs.append(("stream.num.map.output.key.fields", str(self.partition.sort_segments)))
            pairs.append(("mapred.text.key.partitioner.options", f"-k1,{self.partition.key_segments}"))
        else:
            pairs.append(("stream.num.map.output.key.fields", str(self.eq)))
        if self.num_map is not None:
            pairs.append(("mapred.map.tasks", str(self.num_map)))
        if self.num_reduce is not None:
            pairs.append(("mapred.reduce.tasks", str(self.num_reduce)))
        if self.compress:
            pairs.append(("mapred.output.compress", "true"))
            pairs.append(("mapred.output.compression.codec", self.compress))
        pairs.extend(sorted(self.jobconf.items()))
        return pairs


class HadoopEnv(BaseModel):
    model_config = ConfigDict(extra="forbid")
    hadoop_bin: str = "hadoop"
    streaming_jar: str = ""
    python_bin: str = "python3"
    work_dir: str = "tmp/mrstream"  # fresh taps and manifests live here
    files: List[str] = Field(default_factory=list)  # shipped with every job
    jobconf: Dict[str, str] = Field(default_factory=dict)


CLOUDERA_DEMO = HadoopEnv(
    hadoop_bin="/usr/bin/hadoop",
    streaming_jar="/usr/lib/hadoop-0.20-mapreduce/contrib/streaming/hadoop-streaming-2.0.0-mr1-cdh4.1.1.jar",
)

AMAZON_EMR = HadoopEnv(
    hadoop_bin="/home/hadoop/bin/hadoop",
    streaming_jar="/home/hadoop/contrib/streaming/hadoop-streaming.jar",
)

_ENV_OVERRIDES = {
    "MRSTREAM_HADOOP_BIN": "hadoop_bin",
    "MRSTREAM_STREAMING_JAR": "streaming_jar",
    "MRSTREAM_PYTHON_BIN": "python_bin",
    "MRSTREAM_WORK_DIR": "work_dir",
}


def load_yaml(path: str) -> HadoopEnv:
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    return HadoopEnv.model_validate(data)


def load_env(path: Optional[str] = None, base: Optional[HadoopEnv] = None) -> HadoopEnv:
    """Build a HadoopEnv from ``base``, an optional YAML file and MRSTREAM_* variables."""
    load_dotenv()  # load from .env if present
    data: Dict[str, Any] = (base or HadoopEnv()).model_dump()
    if path:
        data.update(load_yaml(path).model_dump(exclude_unset=True))
    for var, field in _ENV_OVERRIDES.items():
        value = os.environ.get(var)
        if value:
            data[field] = value
    return HadoopEnv.model_validate(data)


def normalize_json(data: Any) -> bytes:
    return orjson.dumps(data, option=orjson.OPT_SORT_KEYS)
