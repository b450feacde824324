import rclpy
from rclpy.node import Node
from rclpy.callback_groups import ReentrantCallbackGroup
from rclpy.exceptions import (
    InvalidParameterTypeException,
    InvalidParameterValueException,
    ParameterUninitializedException,
)
from rclpy.executors import MultiThreadedExecutor
from rclpy.parameter import Parameter
from rclpy.task import Future
from std_msgs.msg import Bool
from tf2_ros import Buffer, TransformListener, StaticTransformBroadcaster

from ros2_aruco_interfaces.msg import ArucoMarkers

from target_reacher.acquisition import AcquisitionStateMachine
from target_reacher.config import (
    DEFAULT_PARAMETERS,
    MARKER_IDS,
    TargetReacherConfig,
    required_parameters,
)
from target_reacher.errors import ConfigurationError, MalformedEvent, TargetReacherError
from target_reacher.resolver import GoalResolver
from target_reacher.ros_interfaces import TfFrameGraph, TwistMotionInterface, observation_from_message


PARAMETER_TYPES = {
    float: Parameter.Type.DOUBLE,
    str: Parameter.Type.STRING,
}


class TargetReacher(Node):
    """Sends the robot to the staging goal, spins there until an ArUco marker is seen,
    then sends it to the final destination configured for that marker id"""
    def __init__(self):
        super().__init__('target_reacher')

        self.run_failed = Future()
        """Completed with the error that ends the run; run() spins until it is done"""

        self.config = TargetReacherConfig.from_parameters(self.read_parameters())
        """Raises ConfigurationError before anything is published"""

        self.tf_buffer = Buffer()
        """Stores the transforms received on /tf and /tf_static"""
        self.tf_listener = TransformListener(self.tf_buffer, self, spin_thread=True)
        """Keeps filling the buffer while the marker callback waits on it"""
        self.tf_static_broadcaster = StaticTransformBroadcaster(self)

        self.motion = TwistMotionInterface(
            self,
            self.config.cmd_vel_topic,
            self.config.goal_topic,
            self.config.angular_speed,
            self.config.navigation_frame
        )
        frame_graph = TfFrameGraph(self, self.tf_buffer, self.tf_static_broadcaster)
        self.resolver = GoalResolver.from_config(self.config, frame_graph, logger=self.get_logger())
        self.acquisition = AcquisitionStateMachine(self.motion, self.resolver, logger=self.get_logger())

        # Arrival reports keep being handled while a marker callback waits on tf
        callback_group = ReentrantCallbackGroup()
        self.goal_reached_sub = self.create_subscription(
            Bool, self.config.goal_reached_topic, self.goal_reached_callback, 10,
            callback_group=callback_group
        )
        """Subscribes to the controller's arrival reports"""
        self.aruco_markers_sub = self.create_subscription(
            ArucoMarkers, self.config.aruco_markers_topic, self.aruco_markers_callback, 10,
            callback_group=callback_group
        )
        """Subscribes to ArUco detections"""

        staging = self.config.staging_goal
        self.get_logger().info(
            f'Markers {list(self.config.offsets.identities)} resolve relative to '
            f'{self.config.reference_frame}; heading to staging goal ({staging.x:.2f}, {staging.y:.2f})'
        )
        self.motion.set_goal(staging.x, staging.y)

    def declare(self, name, value):
        """declare_parameter that reports a badly typed override as a ConfigurationError"""
        try:
            return self.declare_parameter(name, value)
        except (InvalidParameterTypeException, InvalidParameterValueException) as ex:
            raise ConfigurationError(f"Parameter '{name}' is invalid: {ex}") from ex

    def read_parameters(self):
        """Declare every parameter and return {name: value}. Unset required values come back as None."""
        for name, default in DEFAULT_PARAMETERS.items():
            self.declare(name, default)

        marker_ids = self.get_parameter(MARKER_IDS).value
        params = {name: self.get_parameter(name).value for name in DEFAULT_PARAMETERS}

        for name, kind in required_parameters(marker_ids).items():
            self.declare(name, PARAMETER_TYPES[kind])
            try:
                params[name] = self.get_parameter(name).value
            except ParameterUninitializedException:
                params[name] = None
        return params

    def goal_reached_callback(self, msg: Bool):
        self.acquisition.handle_arrival(msg.data)

    def aruco_markers_callback(self, msg: ArucoMarkers):
        try:
            observation = observation_from_message(msg)
        except MalformedEvent as ex:
            self.get_logger().warning(f'Dropping marker message: {ex}')
            return
        try:
            self.acquisition.handle_marker(observation)
        except TargetReacherError as ex:
            # Completing the future wakes the executor in run() even if no other message arrives
            if not self.run_failed.done():
                self.run_failed.set_exception(ex)


def run(target_reacher, executor=None):
    """Spin until the run fails or the context shuts down. Returns the exit status."""
    if executor is None:
        executor = MultiThreadedExecutor(num_threads=4)
    executor.add_node(target_reacher)
    try:
        executor.spin_until_future_complete(target_reacher.run_failed)
    finally:
        executor.shutdown()

    if not target_reacher.run_failed.done():
        return 0
    target_reacher.get_logger().fatal(
        f'Run failed, no final goal was set: {target_reacher.run_failed.exception()}'
    )
    return 1


def main(args=None):
    rclpy.init(args=args)
    try:
        target_reacher = TargetReacher()
    except ConfigurationError as ex:
        rclpy.logging.get_logger('target_reacher').fatal(f'Invalid configuration: {ex}')
        rclpy.shutdown()
        return 1

    status = 0
    try:
        status = run(target_reacher)
    except KeyboardInterrupt:
        pass
    finally:
        target_reacher.destroy_node()
        if rclpy.ok():
            rclpy.shutdown()
    return status


if __name__ == '__main__':
    main()
