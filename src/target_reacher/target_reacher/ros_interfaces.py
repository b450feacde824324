from rclpy.duration import Duration
from rclpy.time import Time
from rclpy.qos import QoSProfile, QoSReliabilityPolicy, QoSDurabilityPolicy, QoSHistoryPolicy
from geometry_msgs.msg import Twist, PoseStamped, TransformStamped
from tf2_ros import TransformException

from target_reacher.acquisition import MarkerObservation, MotionInterface
from target_reacher.errors import MalformedEvent, TransformUnavailable
from target_reacher.frames import FrameGraph


class TfFrameGraph(FrameGraph):
    """FrameGraph backed by tf2: static frames go out on /tf_static, lookups read the buffer"""

    def __init__(self, node, tf_buffer, static_broadcaster, lookup_timeout=0.1):
        self.node = node
        self.tf_buffer = tf_buffer
        """Filled by a TransformListener owned by the node"""
        self.static_broadcaster = static_broadcaster
        self.lookup_timeout = lookup_timeout

    def publish_static_transform(self, parent_frame, child_frame, x, y):
        t = TransformStamped()
        t.header.stamp = self.node.get_clock().now().to_msg()
        t.header.frame_id = parent_frame
        t.child_frame_id = child_frame
        t.transform.translation.x = float(x)
        t.transform.translation.y = float(y)
        t.transform.translation.z = 0.0
        t.transform.rotation.x = 0.0
        t.transform.rotation.y = 0.0
        t.transform.rotation.z = 0.0
        t.transform.rotation.w = 1.0
        self.static_broadcaster.sendTransform(t)
        self.node.get_logger().info(
            f"Broadcast static frame '{child_frame}' at ({x:.2f}, {y:.2f}) in '{parent_frame}'"
        )

    def lookup_translation(self, target_frame, source_frame):
        try:
            transform = self.tf_buffer.lookup_transform(
                target_frame,
                source_frame,
                Time(),  # latest
                timeout=Duration(seconds=self.lookup_timeout)
            )
        except TransformException as ex:
            raise TransformUnavailable(target_frame, source_frame, reason=str(ex)) from ex
        translation = transform.transform.translation
        return translation.x, translation.y


class TwistMotionInterface(MotionInterface):
    """Rotation and stop commands on cmd_vel, goals as PoseStamped in the navigation frame"""

    def __init__(self, node, cmd_vel_topic, goal_topic, angular_speed, navigation_frame):
        self.node = node
        self.angular_speed = angular_speed
        self.navigation_frame = navigation_frame
        self.cmd_vel_pub = node.create_publisher(Twist, cmd_vel_topic, 10)
        """Publishes velocity commands to robot."""

        goal_qos = QoSProfile(
            reliability=QoSReliabilityPolicy.RELIABLE,
            durability=QoSDurabilityPolicy.TRANSIENT_LOCAL,  # late controllers still get the goal
            history=QoSHistoryPolicy.KEEP_LAST,
            depth=1
        )
        self.goal_pub = node.create_publisher(PoseStamped, goal_topic, goal_qos)
        """Publishes the destination for the motion controller"""

    def rotate_in_place(self):
        twist = Twist()
        twist.linear.x = 0.0
        twist.angular.z = float(self.angular_speed)
        self.cmd_vel_pub.publish(twist)

    def stop(self):
        self.cmd_vel_pub.publish(Twist())

    def set_goal(self, x, y):
        goal = PoseStamped()
        goal.header.frame_id = self.navigation_frame
        goal.header.stamp = self.node.get_clock().now().to_msg()
        goal.pose.position.x = float(x)
        goal.pose.position.y = float(y)
        goal.pose.orientation.w = 1.0
        self.goal_pub.publish(goal)
        self.node.get_logger().info(f'Goal set to ({x:.2f}, {y:.2f}) in {self.navigation_frame}')


def observation_from_message(msg):
    """MarkerObservation for the first marker in a ros2_aruco_interfaces/ArucoMarkers message"""
    if len(msg.marker_ids) == 0:
        raise MalformedEvent('ArucoMarkers message without marker ids')
    return MarkerObservation(
        identity=int(msg.marker_ids[0]),
        source_frame=msg.header.frame_id,
        stamp=msg.header.stamp
    )
